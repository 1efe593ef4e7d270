"""cachebin — namespaced key/value cache bins with minimum-lifetime expiry."""

from cachebin.interfaces.cache_bin import ICacheBin
from cachebin.models.cache import (
    CACHE_PERMANENT,
    CACHE_TEMPORARY,
    CacheEntry,
    CacheSession,
    MultiGetResult,
)
from cachebin.services.bin_registry import CacheBinRegistry

__version__ = "0.1.0"

__all__ = [
    "CACHE_PERMANENT",
    "CACHE_TEMPORARY",
    "CacheBinRegistry",
    "CacheEntry",
    "CacheSession",
    "ICacheBin",
    "MultiGetResult",
]
