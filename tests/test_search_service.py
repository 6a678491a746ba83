from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from types import SimpleNamespace
from typing import Any, Dict, List

import pytest

from huntr.schemas.search import SearchResultType
from huntr.services.base import SearchError
from huntr.services.cache import redis_client
from huntr.services.cache.redis_client import SearchCache
from huntr.services.search.service import (
    SearchService,
    calculate_relevance,
    enhance_query,
    extract_domain,
    is_recent,
    parse_search_results,
)


class StubSearchService(SearchService):
    """SearchService whose HTTP call returns (or raises) a canned value."""

    def __init__(self, response: Any, **kwargs: Any) -> None:
        super().__init__(api_key="test-key", cache=SearchCache(ttl=300), **kwargs)
        self._response = response
        self.payloads: List[Dict[str, Any]] = []

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.payloads.append(payload)
        if isinstance(self._response, BaseException):
            raise self._response
        return self._response


def _serper_body() -> Dict[str, Any]:
    return {
        "organic": [
            {
                "title": "Bitcoin price analysis: bulls target 70k",
                "link": "https://www.tradingview.com/news/btc-analysis",
                "snippet": "Technical chart signal shows breakout",
            },
            {
                "title": "Best pancake recipes",
                "link": "https://www.cooking.example/pancakes",
                "snippet": "Fluffy and easy",
            },
            {
                "title": "Quarterly report",
                "link": "https://www.reuters.com/business/report",
                "snippet": "Company update",
            },
        ],
        "news": [
            {
                "title": "Crypto market update",
                "link": "https://www.coindesk.com/markets/update",
                "snippet": "Market news",
                "date": "3 hours ago",
                "source": "CoinDesk",
            }
        ],
    }


def test_enhance_query_adds_market_terms_or_date() -> None:
    assert enhance_query("bitcoin ETF") == "bitcoin ETF trading market analysis"
    today = datetime(2025, 1, 5)
    assert enhance_query("BTC price today", today=today) == "BTC price today 2025-01-05"


def test_extract_domain() -> None:
    assert extract_domain("https://www.reuters.com/markets") == "reuters.com"
    assert extract_domain("https://coindesk.com/x") == "coindesk.com"
    assert extract_domain("not a url") == "not a url"


def test_is_recent() -> None:
    assert is_recent("2 days ago")
    assert not is_recent("3 weeks ago")
    assert is_recent((datetime.utcnow() - timedelta(days=1)).strftime("%Y-%m-%d"))
    assert not is_recent(None)
    assert not is_recent("sometime last year")


def test_relevance_scoring_weights() -> None:
    item = {"title": "BTC price analysis", "snippet": "market trend", "link": "https://www.bloomberg.com/a"}
    # price + analysis (15 each), market + trend (10 each), top-tier source 25
    assert calculate_relevance(item) == 75


def test_parse_filters_scores_and_ranks() -> None:
    results = parse_search_results(_serper_body())
    titles = [r.title for r in results]
    assert "Best pancake recipes" not in titles
    # Trusted domain passes the filter without market keywords
    assert "Quarterly report" in titles
    news = next(r for r in results if r.type == SearchResultType.NEWS)
    assert news.source == "CoinDesk"
    # market (10) + news (5) + update (5) + recent (20) + news bonus (10)
    assert news.relevance_score == 50
    assert [r.relevance_score for r in results] == sorted((r.relevance_score for r in results), reverse=True)


def test_parse_keeps_top_eight_and_tolerates_missing_fields() -> None:
    body = {"organic": [{"title": f"price {i}", "link": f"https://x{i}.example"} for i in range(12)] + [{}]}
    results = parse_search_results(body)
    assert len(results) == 8
    assert parse_search_results({}) == []


@pytest.mark.asyncio
async def test_timeout_returns_fallback_placeholder() -> None:
    service = StubSearchService(asyncio.TimeoutError())
    results = await service.search_market_data("BTC price analysis")
    assert len(results) == 1
    assert results[0].type == SearchResultType.FALLBACK
    assert "BTC price analysis" in results[0].snippet


@pytest.mark.asyncio
async def test_other_errors_raise_search_error() -> None:
    service = StubSearchService(ConnectionResetError("reset by peer"))
    with pytest.raises(SearchError):
        await service.search_market_data("BTC price analysis")


@pytest.mark.asyncio
async def test_missing_api_key_raises() -> None:
    service = SearchService(api_key="", cache=SearchCache())
    with pytest.raises(SearchError):
        await service.search_market_data("BTC price analysis")


@pytest.mark.asyncio
async def test_results_are_cached_per_enhanced_query() -> None:
    service = StubSearchService(_serper_body())
    first = await service.search_market_data("bitcoin ETF")
    second = await service.search_market_data("bitcoin ETF")
    assert len(service.payloads) == 1
    assert service.payloads[0]["q"] == "bitcoin ETF trading market analysis"
    assert [r.title for r in first] == [r.title for r in second]


@pytest.mark.asyncio
async def test_memory_cache_expires_and_prunes_stale_queries(monkeypatch) -> None:
    clock = [1000.0]
    monkeypatch.setattr(redis_client, "time", SimpleNamespace(monotonic=lambda: clock[0]))
    cache = SearchCache(ttl=300)

    await cache.set_results("btc 2025-01-05", [{"title": "old"}])
    assert await cache.get_results("btc 2025-01-05") == [{"title": "old"}]

    clock[0] += 301
    await cache.set_results("btc 2025-01-06", [{"title": "new"}])

    assert list(cache._memory_cache) == ["search:btc 2025-01-06"]
    assert await cache.get_results("btc 2025-01-05") is None
    assert await cache.get_results("btc 2025-01-06") == [{"title": "new"}]
