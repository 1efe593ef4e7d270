"""cachebin composition root.

Wires settings, the shared SQLite storage and the cache bin factories into a
:class:`CacheBinRegistry`.  Applications build one registry at startup and
pass it to the code that needs caching:

    registry = build_registry()
    page_cache = await registry.get("page")
    await page_cache.set("front", html, CACHE_TEMPORARY)
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog

from cachebin.config.loader import load_config
from cachebin.config.settings import Settings
from cachebin.providers.cache.database_cache import DatabaseCacheBin
from cachebin.providers.cache.null_cache import NullCacheBin
from cachebin.providers.storage.sqlite_storage import SQLiteCacheStorage
from cachebin.services.bin_registry import BinFactory, CacheBinRegistry
from cachebin.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


def _build_factories(
    app_settings: Settings,
    db_path: str,
    clock: Callable[[], int] | None,
) -> dict[str, BinFactory]:
    """Return implementation name → bin factory for every built-in bin class."""
    storage = SQLiteCacheStorage(db_path=db_path, timeout=app_settings.cache_storage_timeout)

    def database_bin(bin_name: str) -> DatabaseCacheBin:
        return DatabaseCacheBin(bin_name, storage, app_settings, clock=clock)

    return {
        "database": database_bin,
        "null": NullCacheBin,
    }


def build_registry(
    custom_settings: Settings | None = None,
    config: dict[str, Any] | None = None,
    clock: Callable[[], int] | None = None,
) -> CacheBinRegistry:
    """Assemble a registry from settings and the YAML bin mapping.

    Args:
        custom_settings: Settings to use instead of reading the environment.
        config: Pre-loaded configuration; ``load_config()`` when omitted.
        clock: Time source handed to every persistent bin.

    Raises:
        ConfigurationError: if the default or any per-bin implementation
            name is unknown.
    """
    app_settings = custom_settings or Settings()
    resolved = config if config is not None else load_config(settings=app_settings)
    cache_config = resolved.get("cache") or {}

    db_path = cache_config.get("db_path") or app_settings.cache_db_path
    lifetime = cache_config.get("lifetime")
    if lifetime is not None and lifetime != app_settings.cache_lifetime:
        # Bins read the lifetime from settings, so hand them a copy carrying the resolved value.
        app_settings = app_settings.model_copy(update={"cache_lifetime": lifetime})

    registry = CacheBinRegistry(
        factories=_build_factories(app_settings, db_path, clock),
        default_class=cache_config.get("default_class") or "database",
        bin_classes=cache_config.get("bins") or {},
    )
    _logger.info(
        "cache_registry_built",
        db_path=db_path,
        default_class=registry.default_class,
        configured_bins=registry.configured_bins(),
        lifetime=app_settings.cache_lifetime,
    )
    return registry
