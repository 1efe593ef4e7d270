"""No-op cache bin.

Satisfies the ICacheBin contract without storing anything: every read
misses, every write and delete is accepted and discarded, and the bin is
always empty.  The registry serves it for bins configured as ``"null"``
and as a stand-in when durable storage cannot be provisioned.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from cachebin.interfaces.cache_bin import ICacheBin
from cachebin.models.cache import CACHE_PERMANENT, CacheEntry, CacheSession, MultiGetResult


class NullCacheBin(ICacheBin):
    """A cache bin that never caches."""

    def get_provider_name(self) -> str:
        return "null"

    async def get(self, cid: str, session: CacheSession | None = None) -> CacheEntry | None:
        return None

    async def get_multiple(
        self,
        cids: Iterable[str],
        session: CacheSession | None = None,
    ) -> MultiGetResult:
        return MultiGetResult(found={}, missing=list(dict.fromkeys(cids)))

    async def set(self, cid: str, data: Any, expire: int = CACHE_PERMANENT) -> None:
        pass

    async def delete(self, cid: str) -> None:
        pass

    async def delete_multiple(self, cids: Iterable[str]) -> None:
        pass

    async def delete_prefix(self, prefix: str) -> None:
        pass

    async def flush(self) -> None:
        pass

    async def expire(self, session: CacheSession | None = None) -> None:
        pass

    async def garbage_collection(self) -> None:
        pass

    async def is_empty(self) -> bool:
        return True
