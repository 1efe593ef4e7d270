"""Persistent cache bin backed by an ICacheStorage table.

Layer: Providers (concrete adapter implementing ICacheBin).

Expiry model
------------
With ``cache_lifetime == 0`` the bin does plain TTL expiry: ``expire()``
deletes every non-permanent row whose ``expire`` time has passed.

With ``cache_lifetime == N > 0`` the purge is batched behind a per-bin
*flush window*:

  * ``expire()`` stamps the caller's :class:`CacheSession` with the current
    time.  From then on that session ignores non-permanent rows created
    earlier, so the consumer that asked for the expiry sees fresh data
    while everyone else keeps reading the old rows.
  * The first ``expire()`` opens the window.  Later calls are cheap until
    N seconds have passed; the first call after that purges and closes it.
  * ``garbage_collection()`` runs before every read and closes an overdue
    window even if no further ``expire()`` arrives.

Failure policy
--------------
Reads, writes and ``expire()`` fail open: a StorageUnavailableError is
logged and turned into a miss or a dropped write.  ``delete``,
``delete_multiple``, ``delete_prefix`` and ``flush`` let it propagate so a
caller who asked for a removal learns that it did not happen.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable, Iterable
from typing import Any

import structlog

from cachebin.config.settings import Settings
from cachebin.interfaces.cache_bin import ICacheBin
from cachebin.interfaces.cache_storage import ICacheStorage
from cachebin.models.cache import CACHE_PERMANENT, CacheEntry, CacheSession, MultiGetResult
from cachebin.utils.errors import CacheSerializationError, StorageUnavailableError

logger = structlog.get_logger(logger_name=__name__)


def _request_time() -> int:
    return int(time.time())


class DatabaseCacheBin(ICacheBin):
    """Cache bin that persists entries through an :class:`ICacheStorage`.

    Parameters
    ----------
    bin_name:
        Name of the bin; also selects the storage table.
    storage:
        The durable store.  Shared between all bins of a registry.
    settings:
        Source of ``cache_lifetime`` and ``cache_delete_batch_size``.  Read
        on every call, never cached.
    clock:
        Zero-argument callable returning the current Unix time in whole
        seconds.  Defaults to the wall clock.
    """

    def __init__(
        self,
        bin_name: str,
        storage: ICacheStorage,
        settings: Settings,
        clock: Callable[[], int] | None = None,
    ) -> None:
        super().__init__(bin_name)
        self._storage = storage
        self._settings = settings
        self._clock = clock or _request_time

    def get_provider_name(self) -> str:
        return "database"

    async def initialize(self) -> None:
        """Provision the bin's table in storage."""
        await self._storage.initialize()
        await self._storage.ensure_bin(self._bin)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, cid: str, session: CacheSession | None = None) -> CacheEntry | None:
        result = await self.get_multiple([cid], session)
        return result.found.get(cid)

    async def get_multiple(
        self,
        cids: Iterable[str],
        session: CacheSession | None = None,
    ) -> MultiGetResult:
        requested = list(dict.fromkeys(cids))
        if not requested:
            return MultiGetResult(found={}, missing=[])

        try:
            await self.garbage_collection()
            rows = await self._storage.select_by_ids(self._bin, requested)
        except StorageUnavailableError as exc:
            logger.warning("cache_read_failed", bin=self._bin, count=len(requested), error=str(exc))
            return MultiGetResult(found={}, missing=requested)

        found: dict[str, CacheEntry] = {}
        for row in rows:
            entry = self._prepare_entry(row, session)
            if entry is not None:
                found[entry.cid] = entry

        missing = [cid for cid in requested if cid not in found]
        logger.debug("cache_get", bin=self._bin, hits=len(found), misses=len(missing))
        return MultiGetResult(found=found, missing=missing)

    def _prepare_entry(self, row: dict[str, Any], session: CacheSession | None) -> CacheEntry | None:
        """Apply the validity rule to a raw row and decode its payload."""
        if (
            row["expire"] != CACHE_PERMANENT
            and self._settings.cache_lifetime
            and session is not None
            and session.cache > row["created"]
        ):
            return None

        data = row["data"]
        if row["serialized"]:
            try:
                data = json.loads(data)
            except (TypeError, ValueError) as exc:
                logger.warning("cache_decode_failed", bin=self._bin, cid=row["cid"], error=str(exc))
                return None

        return CacheEntry(
            cid=row["cid"],
            data=data,
            created=row["created"],
            expire=row["expire"],
            serialized=row["serialized"],
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def set(self, cid: str, data: Any, expire: int = CACHE_PERMANENT) -> None:
        payload, serialized = self._encode(cid, data)
        try:
            await self._storage.upsert(
                self._bin,
                cid,
                data=payload,
                created=self._clock(),
                expire=expire,
                serialized=serialized,
            )
        except StorageUnavailableError as exc:
            logger.warning("cache_write_failed", bin=self._bin, cid=cid, error=str(exc))
            return
        logger.debug("cache_set", bin=self._bin, cid=cid, expire=expire)

    def _encode(self, cid: str, data: Any) -> tuple[str, bool]:
        if isinstance(data, str):
            return data, False
        try:
            payload = json.dumps(data)
        except (TypeError, ValueError) as exc:
            msg = f"Cannot serialize value for {self._bin}:{cid}: {exc}"
            raise CacheSerializationError(msg, provider_name=self.get_provider_name()) from exc

        # Tuples and non-string dict keys encode fine but decode as something else.
        if json.loads(payload) != data:
            msg = f"Value for {self._bin}:{cid} does not survive a JSON round trip unchanged"
            raise CacheSerializationError(msg, provider_name=self.get_provider_name())
        return payload, True

    # ------------------------------------------------------------------
    # Explicit deletes (storage errors propagate)
    # ------------------------------------------------------------------

    async def delete(self, cid: str) -> None:
        await self._storage.delete_ids(self._bin, [cid])
        logger.debug("cache_delete", bin=self._bin, cid=cid)

    async def delete_multiple(self, cids: Iterable[str]) -> None:
        remaining = list(dict.fromkeys(cids))
        batch_size = self._settings.cache_delete_batch_size
        batches = 0
        while remaining:
            batch, remaining = remaining[:batch_size], remaining[batch_size:]
            await self._storage.delete_ids(self._bin, batch)
            batches += 1
        logger.debug("cache_delete_multiple", bin=self._bin, batches=batches)

    async def delete_prefix(self, prefix: str) -> None:
        await self._storage.delete_prefix(self._bin, prefix)
        logger.debug("cache_delete_prefix", bin=self._bin, prefix=prefix)

    async def flush(self) -> None:
        await self._storage.truncate(self._bin)
        logger.info("cache_flushed", bin=self._bin)

    # ------------------------------------------------------------------
    # Expiry policy
    # ------------------------------------------------------------------

    async def expire(self, session: CacheSession | None = None) -> None:
        now = self._clock()
        lifetime = self._settings.cache_lifetime
        try:
            if not lifetime:
                await self._purge_expired(now)
                return

            if session is not None:
                session.cache = now

            started = await self._storage.get_flush_started(self._bin)
            if not started:
                if await self._storage.start_flush_window(self._bin, now):
                    logger.debug("flush_window_opened", bin=self._bin, started_at=now, lifetime=lifetime)
            elif now >= started + lifetime:
                await self._purge_expired(now)
                await self._close_window(started)
        except StorageUnavailableError as exc:
            logger.warning("cache_expire_failed", bin=self._bin, error=str(exc))

    async def garbage_collection(self) -> None:
        started = await self._storage.get_flush_started(self._bin)
        if not started:
            return
        now = self._clock()
        if started + self._settings.cache_lifetime > now:
            return

        removed = await self._storage.delete_expired(self._bin, started, inclusive=True)
        await self._close_window(started)
        logger.info("cache_garbage_collected", bin=self._bin, removed=removed, window_started=started)

    async def _purge_expired(self, now: int) -> None:
        removed = await self._storage.delete_expired(self._bin, now)
        logger.info("cache_expired", bin=self._bin, removed=removed)

    async def _close_window(self, started: int) -> None:
        # A concurrent caller may already have closed (or reopened) it.
        if await self._storage.close_flush_window(self._bin, started):
            logger.debug("flush_window_closed", bin=self._bin, started_at=started)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    async def is_empty(self) -> bool:
        try:
            await self.garbage_collection()
            return not await self._storage.exists_any(self._bin)
        except StorageUnavailableError as exc:
            logger.warning("cache_probe_failed", bin=self._bin, error=str(exc))
            return True
