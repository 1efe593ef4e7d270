"""Shared pytest fixtures for the cachebin test suite."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import structlog
from structlog.testing import capture_logs

from cachebin.config.settings import Settings
from cachebin.interfaces.cache_storage import ICacheStorage
from cachebin.providers.cache.database_cache import DatabaseCacheBin
from cachebin.providers.storage.sqlite_storage import SQLiteCacheStorage

# An arbitrary fixed "request time" so expiry tests are deterministic.
T0 = 1_700_000_000


class FakeClock:
    """Manually advanced clock returning whole Unix seconds."""

    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def captured_logs():
    """Route structlog events into a list instead of stdout for every test."""
    # Cached loggers would bypass the capturing processor.
    structlog.configure(cache_logger_on_first_use=False)
    with capture_logs() as logs:
        yield logs


# ---------------------------------------------------------------------------
# Settings & time
# ---------------------------------------------------------------------------


def make_settings(**overrides) -> Settings:
    """Build a Settings instance with test defaults, ignoring any .env file."""
    defaults = {
        "cache_db_path": "data/test-cache.db",
        "cache_lifetime": 0,
        "cache_delete_batch_size": 1000,
        "cache_default_class": "",
        "cache_bin_classes": {},
        "app_env": "test",
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    return make_settings


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return make_settings(cache_db_path=str(tmp_path / "cache.db"))


# ---------------------------------------------------------------------------
# Storage & bins
# ---------------------------------------------------------------------------


@pytest.fixture
async def storage(tmp_path: Path) -> SQLiteCacheStorage:
    """An initialized SQLite storage in a temporary directory."""
    s = SQLiteCacheStorage(db_path=tmp_path / "cache.db")
    await s.initialize()
    return s


@pytest.fixture
def make_bin(
    storage: SQLiteCacheStorage,
    settings: Settings,
    clock: FakeClock,
) -> Callable[..., Awaitable[DatabaseCacheBin]]:
    """Factory for DatabaseCacheBin instances sharing one storage and clock."""

    async def _make(name: str = "page") -> DatabaseCacheBin:
        cache_bin = DatabaseCacheBin(name, storage, settings, clock=clock)
        await cache_bin.initialize()
        return cache_bin

    return _make


@pytest.fixture
async def page_bin(make_bin) -> DatabaseCacheBin:
    return await make_bin("page")


@pytest.fixture
def mock_storage() -> ICacheStorage:
    """ICacheStorage mock with empty, successful defaults.

    Override e.g. ``mock_storage.select_by_ids.side_effect = ...`` to
    simulate failures.
    """
    mock = MagicMock(spec=ICacheStorage)
    mock.get_provider_name.return_value = "mock-storage"
    mock.initialize = AsyncMock(return_value=None)
    mock.ensure_bin = AsyncMock(return_value=None)
    mock.select_by_ids = AsyncMock(return_value=[])
    mock.upsert = AsyncMock(return_value=None)
    mock.delete_ids = AsyncMock(return_value=None)
    mock.delete_prefix = AsyncMock(return_value=None)
    mock.delete_expired = AsyncMock(return_value=0)
    mock.truncate = AsyncMock(return_value=None)
    mock.exists_any = AsyncMock(return_value=False)
    mock.get_flush_started = AsyncMock(return_value=0)
    mock.start_flush_window = AsyncMock(return_value=True)
    mock.close_flush_window = AsyncMock(return_value=True)
    return mock
