from __future__ import annotations

import json

import pytest

from huntr.schemas.analysis import SignalAction
from huntr.schemas.search import SearchResultType
from huntr.services.base import SearchError
from huntr.services.llm.client import ModelInvoker
from huntr.services.llm.normalizer import normalize
from huntr.services.search.enrichment import SearchEnrichment
from huntr.services.search.service import fallback_results

from fakes import (
    FakeSearchService,
    ScriptedVisionClient,
    SleepRecorder,
    analysis_payload,
    model_reply,
    search_hit,
)

REFINED = {
    "signal": {"action": "HOLD", "confidence": 55, "takeProfit": 101},
    "reasoning": {"primary": "ETF outflows offset the bullish structure", "risks": ["Macro data"]},
}


def _enrichment(search, replies):
    client = ScriptedVisionClient(replies)
    sleep = SleepRecorder()
    enrichment = SearchEnrichment(
        search,
        ModelInvoker(client, sleep=SleepRecorder()),
        max_queries=2,
        results_per_query=3,
        pacing_seconds=0.5,
        sleep=sleep,
    )
    return enrichment, client, sleep


def _base():
    return normalize(json.dumps(analysis_payload(searchQueries=["q1", "q2", "q3"])))


@pytest.mark.asyncio
async def test_at_most_two_queries_with_pacing_and_three_results_each() -> None:
    hits = [search_hit(f"hit {i}", 90 - i) for i in range(6)]
    search = FakeSearchService(default=hits)
    enrichment, client, sleep = _enrichment(search, [model_reply(REFINED)])

    outcome = await enrichment.enrich(["q1", "q2", "q3"], _base())

    assert search.queries == ["q1", "q2"]
    assert sleep.calls == [0.5]
    assert [len(qr.results) for qr in outcome.search_results] == [3, 3]
    assert outcome.refined is True
    assert len(client.calls) == 1
    assert "hit 0: hit 0 snippet" in client.calls[0].prompt


@pytest.mark.asyncio
async def test_refinement_replaces_signal_and_reasoning() -> None:
    search = FakeSearchService(default=[search_hit("ETF outflows")])
    enrichment, client, sleep = _enrichment(search, [model_reply(REFINED)])
    base = _base()

    result = (await enrichment.enrich(base.search_queries, base)).apply_to(base)

    assert result.signal.action == SignalAction.HOLD
    assert result.signal.confidence == 55
    assert result.signal.take_profit == [101.0]
    assert result.reasoning.primary == "ETF outflows offset the bullish structure"
    assert result.reasoning.web_search_enhanced is True
    assert result.web_search_performed is True
    # Chart analysis is never touched by refinement
    assert result.chart_analysis == base.chart_analysis


@pytest.mark.asyncio
async def test_all_queries_failing_degrades_to_base() -> None:
    search = FakeSearchService(default=SearchError("SearchService", "Search failed: boom"))
    enrichment, client, sleep = _enrichment(search, [])
    base = _base()

    outcome = await enrichment.enrich(base.search_queries, base)
    result = outcome.apply_to(base)

    assert client.calls == []
    assert outcome.refined is False
    assert result.signal == base.signal
    assert result.reasoning == base.reasoning
    assert result.web_search_performed is False


@pytest.mark.asyncio
async def test_one_failing_query_is_skipped() -> None:
    search = FakeSearchService(
        responses={"q1": SearchError("SearchService", "boom"), "q2": [search_hit("Real news")]}
    )
    enrichment, client, sleep = _enrichment(search, [model_reply(REFINED)])

    outcome = await enrichment.enrich(["q1", "q2"], _base())

    assert [qr.query for qr in outcome.search_results] == ["q2"]
    assert outcome.refined is True


@pytest.mark.asyncio
async def test_placeholder_results_do_not_trigger_refinement() -> None:
    search = FakeSearchService(default=fallback_results("q"))
    enrichment, client, sleep = _enrichment(search, [])
    base = _base()

    outcome = await enrichment.enrich(base.search_queries, base)

    assert client.calls == []
    assert outcome.refined is False
    assert outcome.search_results[0].results[0].type == SearchResultType.FALLBACK
    assert outcome.performed is False
    enriched = outcome.apply_to(base)
    assert enriched.signal == base.signal
    assert enriched.web_search_performed is False


@pytest.mark.asyncio
async def test_empty_results_are_not_reported_as_search_performed() -> None:
    search = FakeSearchService(default=[])
    enrichment, client, sleep = _enrichment(search, [])
    base = _base()

    outcome = await enrichment.enrich(base.search_queries, base)

    assert client.calls == []
    assert len(outcome.search_results) == 2
    assert outcome.apply_to(base).web_search_performed is False


@pytest.mark.asyncio
async def test_unparseable_refinement_keeps_unrefined_result() -> None:
    search = FakeSearchService(default=[search_hit("Real news")])
    enrichment, client, sleep = _enrichment(search, ["Sorry, I cannot refine this."])
    base = _base()

    result = (await enrichment.enrich(base.search_queries, base)).apply_to(base)

    assert len(client.calls) == 1
    assert result.signal == base.signal
    assert result.reasoning.web_search_enhanced is False
    assert result.web_search_results[0].query == "q1"


@pytest.mark.asyncio
async def test_refinement_provider_failure_keeps_unrefined_result() -> None:
    search = FakeSearchService(default=[search_hit("Real news")])
    enrichment, client, sleep = _enrichment(search, [ValueError("API key not valid")])
    base = _base()

    result = (await enrichment.enrich(base.search_queries, base)).apply_to(base)

    assert result.signal == base.signal
    assert result.reasoning == base.reasoning
