"""
Search Service

Queries the Serper web search API for current market context and ranks the
hits by market relevance.

A provider timeout yields a single placeholder result so callers can carry
on; every other failure raises SearchError.
"""

import asyncio
import logging
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import aiohttp

from huntr.core.config import settings
from huntr.schemas.search import SearchResult, SearchResultType
from huntr.services.base import SearchError
from huntr.services.cache.redis_client import SearchCache, get_search_cache

logger = logging.getLogger(__name__)

MAX_RESULTS = 8
NEWS_BONUS = 10
RECENCY_DAYS = 7

# Presence of any of these means the query is already market-specific
QUERY_MARKET_KEYWORDS = [
    "trading", "price", "analysis", "market", "crypto", "stock",
    "forex", "technical", "chart", "signal",
]

TRUSTED_SOURCES = [
    "coindesk.com", "cointelegraph.com", "reuters.com", "bloomberg.com",
    "yahoo.com", "marketwatch.com", "tradingview.com", "investing.com",
    "coinmarketcap.com", "coingecko.com", "benzinga.com", "seekingalpha.com",
    "finviz.com", "nasdaq.com", "wsj.com", "ft.com", "cnbc.com",
    "forbes.com", "businessinsider.com", "decrypt.co",
]

TOP_TIER_SOURCES = [
    "bloomberg.com", "reuters.com", "wsj.com", "ft.com",
    "tradingview.com", "investing.com", "marketwatch.com",
]

CONTENT_KEYWORDS = [
    "price", "trading", "market", "analysis", "bull", "bear", "trend",
    "support", "resistance", "volume", "breakout", "technical", "chart",
    "signal", "momentum", "rsi", "macd", "moving average", "fibonacci",
    "candlestick", "pattern", "crypto", "bitcoin", "ethereum", "stock",
    "forex", "buy", "sell", "hold", "target", "stop loss",
]

# keyword -> score contribution
RELEVANCE_WEIGHTS = {
    "price": 15, "analysis": 15, "signal": 15, "trading": 15,
    "market": 10, "trend": 10, "technical": 10, "chart": 10,
    "news": 5, "update": 5, "report": 5,
}
RECENCY_BONUS = 20
TOP_TIER_BONUS = 25

RELATIVE_DATE = re.compile(r"^(\d+)\s+(minute|hour|day|week)s?\s+ago$", re.IGNORECASE)
ABSOLUTE_DATE_FORMATS = ["%b %d, %Y", "%d %b %Y", "%Y-%m-%d"]


def extract_domain(url: Optional[str]) -> str:
    """Hostname without a leading www., or the input when it is not a URL."""
    if not url:
        return ""
    hostname = urlparse(url).hostname
    if not hostname:
        return url
    return hostname[4:] if hostname.startswith("www.") else hostname


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """Parse provider dates ("3 hours ago", "Jan 5, 2025", ISO). None if unknown."""
    if not value:
        return None
    value = value.strip()

    match = RELATIVE_DATE.match(value)
    if match:
        amount, unit = int(match.group(1)), match.group(2).lower()
        return datetime.utcnow() - timedelta(**{f"{unit}s": amount})

    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        pass

    for fmt in ABSOLUTE_DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def is_recent(value: Optional[str], days: int = RECENCY_DAYS) -> bool:
    date = parse_date(value)
    if date is None:
        return False
    return datetime.utcnow() - date <= timedelta(days=days)


def has_market_relevant_content(content: str) -> bool:
    content_lower = content.lower()
    return any(keyword in content_lower for keyword in CONTENT_KEYWORDS)


def is_relevant_source(item: Dict[str, Any]) -> bool:
    """Trusted financial domain, or title/snippet mentioning market terms."""
    domain = extract_domain(item.get("link"))
    if any(source in domain for source in TRUSTED_SOURCES):
        return True
    return has_market_relevant_content(f"{item.get('title', '')} {item.get('snippet', '')}")


def calculate_relevance(item: Dict[str, Any]) -> int:
    content = f"{item.get('title', '')} {item.get('snippet', '')}".lower()
    score = sum(weight for keyword, weight in RELEVANCE_WEIGHTS.items() if keyword in content)

    if is_recent(item.get("date")):
        score += RECENCY_BONUS
    link = item.get("link") or ""
    if any(source in link for source in TOP_TIER_SOURCES):
        score += TOP_TIER_BONUS
    return score


def enhance_query(query: str, today: Optional[datetime] = None) -> str:
    """
    Make a query market-specific.

    Generic queries get "trading market analysis" appended; queries that are
    already about markets get today's date appended to favour fresh results.
    """
    if not any(keyword in query.lower() for keyword in QUERY_MARKET_KEYWORDS):
        return f"{query} trading market analysis"
    today = today or datetime.utcnow()
    return f"{query} {today.strftime('%Y-%m-%d')}"


def parse_search_results(data: Dict[str, Any]) -> List[SearchResult]:
    """Filter, score and rank Serper organic + news results (top 8)."""
    now = datetime.utcnow()
    results: List[SearchResult] = []

    for item in data.get("organic") or []:
        if not isinstance(item, dict) or not is_relevant_source(item):
            continue
        results.append(SearchResult(
            title=item.get("title") or "",
            link=item.get("link"),
            snippet=item.get("snippet") or "",
            source=extract_domain(item.get("link")),
            relevance_score=calculate_relevance(item),
            timestamp=now,
            type=SearchResultType.ORGANIC,
        ))

    for item in data.get("news") or []:
        if not isinstance(item, dict):
            continue
        results.append(SearchResult(
            title=item.get("title") or "",
            link=item.get("link"),
            snippet=item.get("snippet") or "",
            source=item.get("source") or extract_domain(item.get("link")),
            relevance_score=calculate_relevance(item) + NEWS_BONUS,
            timestamp=parse_date(item.get("date")) or now,
            type=SearchResultType.NEWS,
        ))

    results.sort(key=lambda r: r.relevance_score, reverse=True)
    return results[:MAX_RESULTS]


def fallback_results(query: str) -> List[SearchResult]:
    """Placeholder returned when the provider times out."""
    return [SearchResult(
        title="Search temporarily unavailable",
        snippet=f"Market analysis for: {query}. Please check financial news sources for latest updates.",
        source="fallback",
        relevance_score=0,
        timestamp=datetime.utcnow(),
        type=SearchResultType.FALLBACK,
    )]


class SearchService:
    """
    Web search for market context.

    Sources:
    - Serper (Google search API), API key required
    """

    name = "SearchService"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        cache: Optional[SearchCache] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.serper_api_key
        self.base_url = base_url or settings.serper_base_url
        self.timeout = timeout if timeout is not None else settings.search_timeout_seconds
        self._cache = cache
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def cache(self) -> SearchCache:
        if self._cache is None:
            self._cache = get_search_cache()
        return self._cache

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure we have an active HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = await self._ensure_session()
        headers = {
            "X-API-KEY": self.api_key,
            "Content-Type": "application/json",
        }
        async with session.post(self.base_url, json=payload, headers=headers) as response:
            if response.status != 200:
                body = await response.text()
                raise SearchError(
                    self.name,
                    f"Search failed: provider returned status {response.status}",
                    details={"status": response.status, "body": body[:200]},
                )
            return await response.json()

    async def search_market_data(self, query: str) -> List[SearchResult]:
        """
        Search for market information about a query.

        Returns ranked results; a single fallback-typed placeholder on timeout.
        Raises SearchError on any other failure.
        """
        if not self.api_key:
            raise SearchError(self.name, "Search failed: Serper API key not configured")

        enhanced = enhance_query(query)

        cached = await self.cache.get_results(enhanced)
        if cached is not None:
            return [SearchResult.model_validate(r) for r in cached]

        payload = {"q": enhanced, "num": 10, "country": "us", "language": "en"}
        try:
            data = await self._post(payload)
        except asyncio.TimeoutError:
            logger.warning(f"Search timed out for: {query}")
            return fallback_results(query)
        except SearchError:
            raise
        except Exception as e:
            logger.error(f"Serper search error: {e}")
            raise SearchError(self.name, f"Search failed: {e}") from e

        if not isinstance(data, dict):
            raise SearchError(self.name, "Search failed: unexpected response body")

        results = parse_search_results(data)
        await self.cache.set_results(
            enhanced, [r.model_dump(mode="json", by_alias=True) for r in results]
        )
        return results

    async def health_check(self) -> bool:
        return bool(self.api_key)


# Singleton instance
_search_service: Optional[SearchService] = None


def get_search_service() -> SearchService:
    """Get or create search service singleton."""
    global _search_service
    if _search_service is None:
        _search_service = SearchService()
    return _search_service
