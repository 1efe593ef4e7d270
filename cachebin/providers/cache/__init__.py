"""Cache bin providers.

DatabaseCacheBin persists entries through an ICacheStorage (SQLite by
default) and implements the minimum cache lifetime policy.  NullCacheBin
stores nothing and always misses; it is what a bin configured as "null",
or one whose storage could not be provisioned, is served by.
"""

from cachebin.providers.cache.database_cache import DatabaseCacheBin
from cachebin.providers.cache.null_cache import NullCacheBin

__all__ = ["DatabaseCacheBin", "NullCacheBin"]
