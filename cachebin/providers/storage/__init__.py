"""Durable storage for persistent cache bins.

SQLiteCacheStorage keeps one table per bin in a local SQLite file.  Any
other backend only has to implement ICacheStorage.
"""

from cachebin.providers.storage.sqlite_storage import SQLiteCacheStorage

__all__ = ["SQLiteCacheStorage"]
