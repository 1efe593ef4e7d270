"""Abstract base class for the durable store behind persistent cache bins.

The store keeps one table (or collection) per bin, keyed by cache id, plus
a small amount of per-bin bookkeeping for the flush window.  Every method
raises :class:`~cachebin.utils.errors.StorageUnavailableError` when the
backend cannot complete the request; deciding whether that failure is
swallowed or surfaced is the cache bin's job, not the store's.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any


class ICacheStorage(ABC):
    """Contract for cache row persistence."""

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare shared structures (database file, bookkeeping table)."""

    @abstractmethod
    async def ensure_bin(self, bin_name: str) -> None:
        """Create the storage structure for *bin_name* if it does not exist."""

    @abstractmethod
    async def select_by_ids(self, bin_name: str, cids: Sequence[str]) -> list[dict[str, Any]]:
        """Return raw rows for the given ids.

        Each row is a dict with ``cid``, ``data``, ``created``, ``expire``
        and ``serialized`` keys.  Ids with no row are simply absent.
        """

    @abstractmethod
    async def upsert(
        self,
        bin_name: str,
        cid: str,
        *,
        data: str,
        created: int,
        expire: int,
        serialized: bool,
    ) -> None:
        """Insert the row or replace every column of the existing one."""

    @abstractmethod
    async def delete_ids(self, bin_name: str, cids: Sequence[str]) -> None:
        """Delete rows whose id is in *cids*.

        Raises
        ------
        InvalidBatchSizeError
            If *cids* is empty.
        """

    @abstractmethod
    async def delete_prefix(self, bin_name: str, prefix: str) -> None:
        """Delete rows whose id starts with *prefix* (literal, case-sensitive)."""

    @abstractmethod
    async def delete_expired(self, bin_name: str, cutoff: int, *, inclusive: bool = False) -> int:
        """Delete non-permanent rows whose ``expire`` is before *cutoff*.

        With ``inclusive=True`` rows expiring exactly at *cutoff* go too.
        Returns the number of rows removed.
        """

    @abstractmethod
    async def truncate(self, bin_name: str) -> None:
        """Delete every row in the bin."""

    @abstractmethod
    async def exists_any(self, bin_name: str) -> bool:
        """Return ``True`` if the bin holds at least one row."""

    # -- Flush window bookkeeping ------------------------------------------

    @abstractmethod
    async def get_flush_started(self, bin_name: str) -> int:
        """Return the open flush window's start time, or 0 when none is open."""

    @abstractmethod
    async def start_flush_window(self, bin_name: str, started_at: int) -> bool:
        """Open a window at *started_at* if none is open.

        Returns ``False`` when another caller opened one first.
        """

    @abstractmethod
    async def close_flush_window(self, bin_name: str, started_at: int) -> bool:
        """Close the window only if it is still the one opened at *started_at*."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for this backend."""
