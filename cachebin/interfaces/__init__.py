"""Public interface definitions for cache bins and their storage.

Business code talks to ``ICacheBin`` only.  Concrete bins live in
``cachebin/providers/cache`` and are handed out by the bin registry, so
swapping the persistent bin for the null bin is a configuration change.

CONCRETE PROVIDER MAP:
    Interface        →  Concrete implementations (in cachebin/providers/)
    ─────────────────────────────────────────────────────────────────
    ICacheBin        →  DatabaseCacheBin, NullCacheBin
    ICacheStorage    →  SQLiteCacheStorage
"""

from cachebin.interfaces.cache_bin import ICacheBin
from cachebin.interfaces.cache_storage import ICacheStorage

__all__ = [
    "ICacheBin",
    "ICacheStorage",
]
