"""Bounded in-memory caching."""

from fedifetch.cache.lru import BoundedCache, CacheEntry, CacheStats


__all__ = [
    "BoundedCache",
    "CacheEntry",
    "CacheStats",
]
