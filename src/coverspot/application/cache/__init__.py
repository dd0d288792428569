"""Caching layer - positive and negative cover caches."""

from coverspot.application.cache.base_cache import (
    BaseCache,
    BoundedTTLCache,
    CacheEntry,
    ExpiryPolicy,
)
from coverspot.application.cache.cover_cache import CoverCacheManager

__all__ = [
    "BaseCache",
    "BoundedTTLCache",
    "CacheEntry",
    "CoverCacheManager",
    "ExpiryPolicy",
]
