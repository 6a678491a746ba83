"""
Redis cache client for search results.

Search provider calls are slow and metered; identical enhanced queries within
the TTL are served from cache. Falls back to process memory when Redis is
unavailable.
"""

import json
import logging
import time
from typing import Any, Dict, Optional, Tuple

import redis.asyncio as redis

from huntr.core.config import settings

logger = logging.getLogger(__name__)

# Global Redis connection pool
_redis_pool: Optional[redis.Redis] = None


async def init_redis() -> Optional[redis.Redis]:
    """
    Initialize Redis connection pool.
    Called on application startup.
    """
    global _redis_pool

    if _redis_pool is not None:
        return _redis_pool

    try:
        _redis_pool = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        # Test connection
        await _redis_pool.ping()
        logger.info(f"Redis connected: {settings.redis_url}")
        return _redis_pool
    except Exception as e:
        logger.warning(f"Redis connection failed: {e}. Using in-memory fallback.")
        _redis_pool = None
        return None


async def close_redis() -> None:
    """Close Redis connection pool."""
    global _redis_pool
    if _redis_pool:
        await _redis_pool.close()
        _redis_pool = None
        logger.info("Redis connection closed")


class SearchCache:
    """
    Cache for parsed search results.

    Keys:
    - search:{enhanced query} -> JSON list of SearchResult dicts
    """

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        ttl: Optional[int] = None,
    ):
        self._redis = redis_client
        self.ttl = ttl if ttl is not None else settings.search_cache_ttl
        # In-memory fallback: key -> (expires_at, value)
        self._memory_cache: Dict[str, Tuple[float, str]] = {}

    @property
    def redis(self) -> Optional[redis.Redis]:
        return self._redis or _redis_pool

    @staticmethod
    def _key(query: str) -> str:
        return f"search:{query.strip().lower()}"

    def _memory_get(self, key: str) -> Optional[str]:
        entry = self._memory_cache.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at < time.monotonic():
            self._memory_cache.pop(key, None)
            return None
        return value

    def _memory_set(self, key: str, value: str) -> None:
        now = time.monotonic()
        expired = [k for k, (expires_at, _) in self._memory_cache.items() if expires_at < now]
        for k in expired:
            del self._memory_cache[k]
        self._memory_cache[key] = (now + self.ttl, value)

    async def get_results(self, query: str) -> Optional[list[dict[str, Any]]]:
        """Cached results for a query, or None."""
        key = self._key(query)
        value = None

        if self.redis:
            try:
                value = await self.redis.get(key)
            except Exception as e:
                logger.debug(f"Redis get_results failed: {e}")
                value = self._memory_get(key)
        else:
            value = self._memory_get(key)

        if not value:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return None

    async def set_results(self, query: str, results: list[dict[str, Any]]) -> bool:
        """Store results for a query with the cache TTL."""
        key = self._key(query)
        value = json.dumps(results, default=str)

        if self.redis:
            try:
                await self.redis.set(key, value, ex=self.ttl)
                return True
            except Exception as e:
                logger.debug(f"Redis set_results failed: {e}")

        # Fallback to memory
        self._memory_set(key, value)
        return True


# Singleton instance
_search_cache: Optional[SearchCache] = None


def get_search_cache() -> SearchCache:
    """Get or create search cache singleton."""
    global _search_cache
    if _search_cache is None:
        _search_cache = SearchCache()
    return _search_cache
