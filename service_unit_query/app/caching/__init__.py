"""
Unit Query caching package.

Responses are cached per distinct query (or cursor) behind a small
``CacheStore`` interface so the pipeline does not care whether entries
live on disk, in memory or in Redis. Entries are never evicted.
"""

from .stores import CacheEntry, CacheStore, FileCacheStore, MemoryCacheStore, RedisCacheStore, create_cache_store
from .response_cache import ResponseCache

__all__ = [
    "CacheEntry",
    "CacheStore",
    "FileCacheStore",
    "MemoryCacheStore",
    "RedisCacheStore",
    "ResponseCache",
    "create_cache_store",
]
