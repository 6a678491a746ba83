"""
Vision Model Client Abstraction

Provides a unified interface for the generative vision-language model and
the invoker that applies the retry/fallback policy across model variants.

Overload signals (provider capacity errors) are retried according to an
explicit RetryPolicy. Every other provider error propagates immediately.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Sequence
import asyncio
import logging
import time

from google.api_core import exceptions as google_exceptions
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_none,
)

from huntr.services.base import ProviderError, ProviderExhaustedError

logger = logging.getLogger(__name__)

DEFAULT_VARIANT = "gemini-2.5-flash"

OVERLOAD_EXCEPTIONS = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.ResourceExhausted,
    google_exceptions.TooManyRequests,
)


def is_overload_error(exc: BaseException) -> bool:
    """True when the provider reported a capacity/throttling error."""
    if isinstance(exc, OVERLOAD_EXCEPTIONS):
        return True
    message = str(exc).lower()
    return "overloaded" in message or "503" in message


@dataclass(frozen=True)
class ImagePart:
    """Inline image submitted with a prompt."""

    data: bytes
    mime_type: str = "image/jpeg"

    def to_content(self) -> dict:
        return {"mime_type": self.mime_type, "data": self.data}


@dataclass
class ModelResponse:
    """Response from the model."""

    text: str
    variant: str
    usage: dict = field(default_factory=dict)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry/fallback policy consumed by ModelInvoker.

    The first attempt uses the caller's preferred variant; every later attempt
    uses fallback_variant. Waits between attempts grow as
    backoff_base * 2 ** (attempt - 1) seconds; backoff_base == 0 means retry
    immediately.
    """

    max_attempts: int
    backoff_base: float
    fallback_variant: str = DEFAULT_VARIANT
    retryable: Callable[[BaseException], bool] = is_overload_error

    def variant_for_attempt(self, preferred: str, attempt_number: int) -> str:
        if attempt_number <= 1:
            return preferred
        return self.fallback_variant

    def wait_strategy(self):
        if self.backoff_base <= 0:
            return wait_none()
        return wait_exponential(multiplier=self.backoff_base, exp_base=2)

    @classmethod
    def single(cls, fallback_variant: str = DEFAULT_VARIANT) -> "RetryPolicy":
        """One try on the preferred variant, one immediate retry on the fallback."""
        return cls(max_attempts=2, backoff_base=0.0, fallback_variant=fallback_variant)

    @classmethod
    def batch(cls, fallback_variant: str = DEFAULT_VARIANT) -> "RetryPolicy":
        """Three tries with 2s/4s backoff, switching to the fallback after the first failure."""
        return cls(max_attempts=3, backoff_base=2.0, fallback_variant=fallback_variant)


class BaseVisionClient(ABC):
    """Abstract base class for generative model clients."""

    @abstractmethod
    async def generate(
        self,
        variant: str,
        prompt: str,
        image_parts: Sequence[ImagePart] = (),
    ) -> ModelResponse:
        """Generate a response from the model variant."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the model service is accessible."""
        pass


class GeminiClient(BaseVisionClient):
    """Google Gemini client implementation."""

    def __init__(
        self,
        api_key: Optional[str],
        timeout: float = 60.0,
        temperature: float = 0.4,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.temperature = temperature

    def _get_model(self, variant: str):
        """Get Gemini model for a variant name."""
        try:
            import google.generativeai as genai

            genai.configure(api_key=self.api_key)
            return genai.GenerativeModel(variant)
        except ImportError:
            raise RuntimeError(
                "google-generativeai package not installed. Run: pip install google-generativeai"
            )

    async def generate(
        self,
        variant: str,
        prompt: str,
        image_parts: Sequence[ImagePart] = (),
    ) -> ModelResponse:
        """Generate response using Gemini."""
        model = self._get_model(variant)
        contents = [prompt, *[part.to_content() for part in image_parts]]

        # Gemini's generate_content is synchronous, wrap in executor
        loop = asyncio.get_event_loop()
        response = await loop.run_in_executor(
            None,
            lambda: model.generate_content(
                contents,
                generation_config={"temperature": self.temperature},
                request_options={"timeout": self.timeout},
            ),
        )

        usage = {}
        if getattr(response, "usage_metadata", None) is not None:
            usage = {
                "prompt_tokens": response.usage_metadata.prompt_token_count,
                "completion_tokens": response.usage_metadata.candidates_token_count,
            }

        return ModelResponse(text=response.text, variant=variant, usage=usage)

    async def health_check(self) -> bool:
        """Check Gemini API connectivity."""
        try:
            response = await self.generate(DEFAULT_VARIANT, "Hi")
            return response is not None
        except Exception as e:
            logger.error(f"Gemini health check failed: {e}")
            return False


@dataclass
class Invocation:
    """Outcome of a successful ModelInvoker.invoke call."""

    text: str
    variant: str
    attempts: int
    latency_ms: int


class ModelInvoker:
    """
    Calls the model under a RetryPolicy.

    - Overload signals are retried (switching to the policy's fallback variant)
    - Non-overload errors raise ProviderError immediately
    - Exhausting all attempts raises ProviderExhaustedError
    """

    name = "ModelInvoker"

    def __init__(
        self,
        client: BaseVisionClient,
        default_variant: str = DEFAULT_VARIANT,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.default_variant = default_variant
        self._sleep = sleep

    def single_policy(self) -> RetryPolicy:
        return RetryPolicy.single(self.default_variant)

    def batch_policy(self) -> RetryPolicy:
        return RetryPolicy.batch(self.default_variant)

    async def invoke(
        self,
        prompt: str,
        image_parts: Sequence[ImagePart] = (),
        preferred_variant: Optional[str] = None,
        policy: Optional[RetryPolicy] = None,
    ) -> Invocation:
        """Invoke the model, returning the raw text and the variant that produced it."""
        policy = policy or self.single_policy()
        preferred = preferred_variant or self.default_variant
        start = time.perf_counter()
        used_variant = preferred
        attempts = 0

        def _log_retry(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            next_variant = policy.variant_for_attempt(preferred, retry_state.attempt_number + 1)
            logger.warning(
                f"Attempt {retry_state.attempt_number}: {used_variant} overloaded ({exc}), "
                f"retrying with {next_variant} in {retry_state.upcoming_sleep:.1f}s"
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(policy.max_attempts),
            wait=policy.wait_strategy(),
            retry=retry_if_exception(policy.retryable),
            before_sleep=_log_retry,
            sleep=self._sleep,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    used_variant = policy.variant_for_attempt(preferred, attempts)
                    response = await self.client.generate(used_variant, prompt, image_parts)
        except RetryError as e:
            last = e.last_attempt.exception()
            logger.error(f"Model invocation exhausted after {attempts} attempts: {last}")
            raise ProviderExhaustedError(
                self.name,
                details={"attempts": attempts, "last_variant": used_variant, "last_error": str(last)},
            ) from last
        except Exception as e:
            logger.error(f"Model invocation failed on {used_variant}: {e}")
            raise ProviderError(
                self.name,
                f"AI analysis failed: {e}",
                details={"variant": used_variant},
            ) from e

        latency_ms = int((time.perf_counter() - start) * 1000)
        return Invocation(
            text=response.text or "",
            variant=response.variant or used_variant,
            attempts=attempts,
            latency_ms=latency_ms,
        )


# Singleton instance management
_model_invoker: Optional[ModelInvoker] = None


def get_model_invoker() -> ModelInvoker:
    """Get or create model invoker singleton."""
    global _model_invoker
    if _model_invoker is None:
        from huntr.core.config import settings

        if not settings.gemini_api_key:
            logger.warning("GEMINI_API_KEY not configured. Model calls will fail.")

        client = GeminiClient(
            api_key=settings.gemini_api_key,
            timeout=settings.model_timeout_seconds,
            temperature=settings.model_temperature,
        )
        _model_invoker = ModelInvoker(client, default_variant=settings.gemini_default_model)
    return _model_invoker
