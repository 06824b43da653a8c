"""Application-level caches."""

from checkpointer.application.cache.base_cache import BaseCache, CacheEntry, InMemoryCache

__all__ = ["BaseCache", "CacheEntry", "InMemoryCache"]
