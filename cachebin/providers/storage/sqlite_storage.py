"""SQLite-backed cache row storage.

Layer: Providers (concrete adapter implementing ICacheStorage).

Database: ``data/cache.db`` by default, one ``cache_<bin>`` table per bin
plus a ``cachebin_flush_windows`` bookkeeping table holding each bin's
flush window start time.  Keeping the window in the database lets every
worker process sharing the file agree on it.

Uses ``aiosqlite`` with one short-lived connection per operation and
``PRAGMA journal_mode=WAL`` for concurrent read safety.  Every driver
error is re-raised as :class:`StorageUnavailableError`.
"""

from __future__ import annotations

import re
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from cachebin.interfaces.cache_storage import ICacheStorage
from cachebin.models.cache import CACHE_PERMANENT
from cachebin.utils.errors import ConfigurationError, InvalidBatchSizeError, StorageUnavailableError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/cache.db")

_BIN_NAME_RE = re.compile(r"^[A-Za-z0-9_]+$")

# Stays well under SQLITE_MAX_VARIABLE_NUMBER on every SQLite build.
_SELECT_CHUNK_SIZE = 500

# ── Schema DDL ────────────────────────────────────────────────────────

_CREATE_FLUSH_TABLE = """\
CREATE TABLE IF NOT EXISTS cachebin_flush_windows (
    bin         TEXT    PRIMARY KEY,
    started_at  INTEGER NOT NULL DEFAULT 0
);
"""

_CREATE_BIN_TABLE = """\
CREATE TABLE IF NOT EXISTS {table} (
    cid         TEXT    NOT NULL PRIMARY KEY,
    data        TEXT,
    expire      INTEGER NOT NULL DEFAULT 0,
    created     INTEGER NOT NULL DEFAULT 0,
    serialized  INTEGER NOT NULL DEFAULT 0
);
"""

_CREATE_EXPIRE_INDEX = "CREATE INDEX IF NOT EXISTS idx_{table}_expire ON {table}(expire);"

_REGISTER_BIN = "INSERT OR IGNORE INTO cachebin_flush_windows (bin, started_at) VALUES (?, 0);"

# ── DML ───────────────────────────────────────────────────────────────

_SELECT_BY_IDS = "SELECT cid, data, created, expire, serialized FROM {table} WHERE cid IN ({marks});"

_UPSERT = """\
INSERT INTO {table} (cid, data, expire, created, serialized)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT(cid)
DO UPDATE SET data       = excluded.data,
              expire     = excluded.expire,
              created    = excluded.created,
              serialized = excluded.serialized;
"""

_DELETE_BY_IDS = "DELETE FROM {table} WHERE cid IN ({marks});"

# substr() instead of LIKE: LIKE is case-insensitive for ASCII and treats
# '%' and '_' in the prefix as wildcards.
_DELETE_PREFIX = "DELETE FROM {table} WHERE substr(cid, 1, ?) = ?;"

_DELETE_EXPIRED = "DELETE FROM {table} WHERE expire <> ? AND expire {op} ?;"

_TRUNCATE = "DELETE FROM {table};"

_EXISTS_ANY = "SELECT 1 FROM {table} LIMIT 1;"

_SELECT_FLUSH = "SELECT started_at FROM cachebin_flush_windows WHERE bin = ?;"

_START_FLUSH = """\
INSERT INTO cachebin_flush_windows (bin, started_at)
VALUES (?, ?)
ON CONFLICT(bin)
DO UPDATE SET started_at = excluded.started_at
WHERE cachebin_flush_windows.started_at = 0;
"""

_CLOSE_FLUSH = "UPDATE cachebin_flush_windows SET started_at = 0 WHERE bin = ? AND started_at = ?;"


class SQLiteCacheStorage(ICacheStorage):
    """SQLite persistence for cache bins.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.  Parent directories are created
        on :meth:`initialize`.
    timeout:
        Seconds to wait on a locked database before failing.
    """

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH, timeout: float = 5.0) -> None:
        self._db_path = Path(db_path)
        self._timeout = timeout
        self._initialized = False

    def get_provider_name(self) -> str:
        return "sqlite"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create the database file and the flush window table."""
        if self._initialized:
            return
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailableError(str(exc), provider_name=self.get_provider_name()) from exc

        async with self._connect() as db:
            # WAL mode enables concurrent readers while a writer is active.
            await db.execute("PRAGMA journal_mode=WAL;")
            await db.execute(_CREATE_FLUSH_TABLE)
            await db.commit()
        self._initialized = True
        logger.info("cache_db_initialized", path=str(self._db_path))

    async def ensure_bin(self, bin_name: str) -> None:
        """Create the bin table, its expire index and its flush window row."""
        table = _table(bin_name)
        await self.initialize()
        async with self._connect() as db:
            await db.execute(_CREATE_BIN_TABLE.format(table=table))
            await db.execute(_CREATE_EXPIRE_INDEX.format(table=table))
            await db.execute(_REGISTER_BIN, (bin_name,))
            await db.commit()
        logger.debug("cache_bin_provisioned", bin=bin_name, table=table)

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------

    async def select_by_ids(self, bin_name: str, cids: Sequence[str]) -> list[dict[str, Any]]:
        table = _table(bin_name)
        rows: list[dict[str, Any]] = []
        if not cids:
            return rows

        async with self._connect() as db:
            for start in range(0, len(cids), _SELECT_CHUNK_SIZE):
                chunk = list(cids[start:start + _SELECT_CHUNK_SIZE])
                cursor = await db.execute(
                    _SELECT_BY_IDS.format(table=table, marks=_placeholders(len(chunk))),
                    chunk,
                )
                for row in await cursor.fetchall():
                    record = dict(row)
                    record["serialized"] = bool(record["serialized"])
                    rows.append(record)
        return rows

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
        table = _table(bin_name)
        async with self._connect() as db:
            await db.execute(
                _UPSERT.format(table=table),
                (cid, data, expire, created, int(serialized)),
            )
            await db.commit()

    async def delete_ids(self, bin_name: str, cids: Sequence[str]) -> None:
        table = _table(bin_name)
        if not cids:
            raise InvalidBatchSizeError(provider_name=self.get_provider_name())

        ids = list(cids)
        async with self._connect() as db:
            await db.execute(
                _DELETE_BY_IDS.format(table=table, marks=_placeholders(len(ids))),
                ids,
            )
            await db.commit()

    async def delete_prefix(self, bin_name: str, prefix: str) -> None:
        table = _table(bin_name)
        async with self._connect() as db:
            await db.execute(_DELETE_PREFIX.format(table=table), (len(prefix), prefix))
            await db.commit()

    async def delete_expired(self, bin_name: str, cutoff: int, *, inclusive: bool = False) -> int:
        table = _table(bin_name)
        op = "<=" if inclusive else "<"
        async with self._connect() as db:
            cursor = await db.execute(
                _DELETE_EXPIRED.format(table=table, op=op),
                (CACHE_PERMANENT, cutoff),
            )
            removed = cursor.rowcount
            await db.commit()
        return max(removed, 0)

    async def truncate(self, bin_name: str) -> None:
        table = _table(bin_name)
        async with self._connect() as db:
            await db.execute(_TRUNCATE.format(table=table))
            await db.commit()

    async def exists_any(self, bin_name: str) -> bool:
        table = _table(bin_name)
        async with self._connect() as db:
            cursor = await db.execute(_EXISTS_ANY.format(table=table))
            row = await cursor.fetchone()
        return row is not None

    # ------------------------------------------------------------------
    # Flush window
    # ------------------------------------------------------------------

    async def get_flush_started(self, bin_name: str) -> int:
        async with self._connect() as db:
            cursor = await db.execute(_SELECT_FLUSH, (bin_name,))
            row = await cursor.fetchone()
        return int(row["started_at"]) if row else 0

    async def start_flush_window(self, bin_name: str, started_at: int) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(_START_FLUSH, (bin_name, started_at))
            opened = cursor.rowcount == 1
            await db.commit()
        return opened

    async def close_flush_window(self, bin_name: str, started_at: int) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(_CLOSE_FLUSH, (bin_name, started_at))
            closed = cursor.rowcount == 1
            await db.commit()
        return closed

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        """Open a connection, translating driver errors to StorageUnavailableError."""
        try:
            async with aiosqlite.connect(str(self._db_path), timeout=self._timeout) as db:
                db.row_factory = aiosqlite.Row
                yield db
        except aiosqlite.Error as exc:
            raise StorageUnavailableError(str(exc), provider_name=self.get_provider_name()) from exc


def _table(bin_name: str) -> str:
    """Map a bin name to its table name, rejecting anything unsafe to interpolate."""
    if not _BIN_NAME_RE.match(bin_name):
        msg = f"Invalid cache bin name {bin_name!r}: use letters, digits and underscores"
        raise ConfigurationError(msg, provider_name="sqlite")
    return f"cache_{bin_name}"


def _placeholders(count: int) -> str:
    return ", ".join("?" * count)
