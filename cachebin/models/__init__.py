"""cachebin domain models — re-exports all public model classes."""

from __future__ import annotations

from cachebin.models.cache import (
    CACHE_PERMANENT,
    CACHE_TEMPORARY,
    CacheEntry,
    CacheSession,
    MultiGetResult,
)

__all__ = [
    "CACHE_PERMANENT",
    "CACHE_TEMPORARY",
    "CacheEntry",
    "CacheSession",
    "MultiGetResult",
]
