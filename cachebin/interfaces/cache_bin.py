"""Abstract base class for cache bin implementations.

A bin is a named, isolated key/value namespace.  Operations never cross bin
boundaries.  Implementations may persist entries (``DatabaseCacheBin``) or
drop everything on the floor (``NullCacheBin``); callers obtain instances
through :class:`~cachebin.services.bin_registry.CacheBinRegistry` and never
construct them directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from cachebin.models.cache import CACHE_PERMANENT, CacheEntry, CacheSession, MultiGetResult


class ICacheBin(ABC):
    """Contract for a single cache bin.

    All operations are async so that storage-backed bins never block the
    event loop.
    """

    def __init__(self, bin_name: str) -> None:
        self._bin = bin_name

    @property
    def bin_name(self) -> str:
        """The name of the namespace this instance serves."""
        return self._bin

    async def initialize(self) -> None:
        """Provision whatever storage the bin needs.  Safe to call twice."""

    @abstractmethod
    async def get(self, cid: str, session: CacheSession | None = None) -> CacheEntry | None:
        """Return the entry stored under *cid*, or ``None`` on a miss.

        Parameters
        ----------
        cid:
            The cache id to look up.
        session:
            The requesting consumer's watermark.  When a minimum cache
            lifetime is active, non-permanent entries created before
            ``session.cache`` are reported as misses.
        """

    @abstractmethod
    async def get_multiple(
        self,
        cids: Iterable[str],
        session: CacheSession | None = None,
    ) -> MultiGetResult:
        """Look up several ids at once.

        Returns
        -------
        MultiGetResult
            ``found`` maps each hit's id to its entry; ``missing`` lists the
            requested ids that were absent or invalid, in request order.
            The caller's *cids* collection is never modified.
        """

    @abstractmethod
    async def set(self, cid: str, data: Any, expire: int = CACHE_PERMANENT) -> None:
        """Store *data* under *cid*, replacing any existing entry.

        Parameters
        ----------
        cid:
            The cache id.
        data:
            A string (stored verbatim) or any JSON-encodable value.
        expire:
            ``CACHE_PERMANENT``, ``CACHE_TEMPORARY`` or a Unix timestamp
            after which the entry may be purged.
        """

    @abstractmethod
    async def delete(self, cid: str) -> None:
        """Remove the entry stored under *cid* (no-op if absent)."""

    @abstractmethod
    async def delete_multiple(self, cids: Iterable[str]) -> None:
        """Remove every entry whose id is in *cids*."""

    @abstractmethod
    async def delete_prefix(self, prefix: str) -> None:
        """Remove every entry whose id starts with *prefix*."""

    @abstractmethod
    async def flush(self) -> None:
        """Remove all entries in the bin, permanent ones included."""

    @abstractmethod
    async def expire(self, session: CacheSession | None = None) -> None:
        """Apply the time-based expiry policy.

        Depending on the configured minimum cache lifetime this either
        purges expired entries right away or only records a watermark on
        *session* and defers the purge to the end of the flush window.
        """

    @abstractmethod
    async def garbage_collection(self) -> None:
        """Purge expired entries if an overdue flush window is open."""

    @abstractmethod
    async def is_empty(self) -> bool:
        """Return ``True`` if the bin holds no entries after garbage collection."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for this implementation."""
