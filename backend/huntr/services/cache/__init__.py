"""
Cache module for Huntr.

Provides Redis caching for search provider results.
"""

from huntr.services.cache.redis_client import (
    SearchCache,
    get_search_cache,
    init_redis,
    close_redis,
)

__all__ = [
    "SearchCache",
    "get_search_cache",
    "init_redis",
    "close_redis",
]
