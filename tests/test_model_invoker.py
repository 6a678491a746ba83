from __future__ import annotations

import pytest
from google.api_core import exceptions as google_exceptions

from huntr.services.base import ProviderError, ProviderExhaustedError
from huntr.services.llm.client import ImagePart, ModelInvoker, RetryPolicy, is_overload_error

from fakes import SleepRecorder, ScriptedVisionClient

DEFAULT = "gemini-2.5-flash"
PREFERRED = "gemini-2.5-pro"


def _invoker(replies) -> tuple[ModelInvoker, ScriptedVisionClient, SleepRecorder]:
    client = ScriptedVisionClient(replies)
    sleep = SleepRecorder()
    return ModelInvoker(client, default_variant=DEFAULT, sleep=sleep), client, sleep


def test_overload_detection() -> None:
    assert is_overload_error(google_exceptions.ServiceUnavailable("busy"))
    assert is_overload_error(google_exceptions.ResourceExhausted("quota"))
    assert is_overload_error(google_exceptions.TooManyRequests("slow down"))
    assert is_overload_error(RuntimeError("The model is overloaded. Please try again later."))
    assert is_overload_error(RuntimeError("HTTP 503 from upstream"))
    assert not is_overload_error(ValueError("API key not valid"))


def test_policy_presets() -> None:
    single = RetryPolicy.single(DEFAULT)
    batch = RetryPolicy.batch(DEFAULT)
    assert (single.max_attempts, single.backoff_base) == (2, 0.0)
    assert (batch.max_attempts, batch.backoff_base) == (3, 2.0)
    assert [batch.variant_for_attempt(PREFERRED, n) for n in (1, 2, 3)] == [PREFERRED, DEFAULT, DEFAULT]


@pytest.mark.asyncio
async def test_first_attempt_success_uses_preferred_variant() -> None:
    invoker, client, sleep = _invoker(["{}"])
    invocation = await invoker.invoke("prompt", [ImagePart(b"img")], preferred_variant=PREFERRED)
    assert invocation.variant == PREFERRED
    assert invocation.attempts == 1
    assert client.calls[0].image_count == 1
    assert sleep.calls == []


@pytest.mark.asyncio
async def test_single_policy_falls_back_immediately() -> None:
    invoker, client, sleep = _invoker([google_exceptions.ServiceUnavailable("overloaded"), "{}"])
    invocation = await invoker.invoke("prompt", preferred_variant=PREFERRED)
    assert [c.variant for c in client.calls] == [PREFERRED, DEFAULT]
    assert invocation.variant == DEFAULT
    assert invocation.attempts == 2
    assert all(s == 0 for s in sleep.calls)


@pytest.mark.asyncio
async def test_batch_policy_backs_off_two_then_four_seconds() -> None:
    invoker, client, sleep = _invoker(
        [
            google_exceptions.ServiceUnavailable("The model is overloaded"),
            RuntimeError("503 Service Unavailable"),
            "{}",
        ]
    )
    invocation = await invoker.invoke("prompt", preferred_variant=PREFERRED, policy=invoker.batch_policy())
    assert [c.variant for c in client.calls] == [PREFERRED, DEFAULT, DEFAULT]
    assert sleep.calls == [2.0, 4.0]
    assert invocation.variant == DEFAULT
    assert invocation.attempts == 3


@pytest.mark.asyncio
async def test_exhausted_attempts_raise_retry_later_error() -> None:
    invoker, client, sleep = _invoker([google_exceptions.ServiceUnavailable("overloaded")] * 3)
    with pytest.raises(ProviderExhaustedError) as excinfo:
        await invoker.invoke("prompt", policy=invoker.batch_policy())
    assert len(client.calls) == 3
    assert "try again" in excinfo.value.message
    assert excinfo.value.retry_after == 60
    assert excinfo.value.details["attempts"] == 3


@pytest.mark.asyncio
async def test_non_overload_error_is_not_retried() -> None:
    invoker, client, sleep = _invoker([ValueError("API key not valid")])
    with pytest.raises(ProviderError) as excinfo:
        await invoker.invoke("prompt", policy=invoker.batch_policy())
    assert not isinstance(excinfo.value, ProviderExhaustedError)
    assert len(client.calls) == 1
    assert sleep.calls == []
    assert "API key not valid" in excinfo.value.message
