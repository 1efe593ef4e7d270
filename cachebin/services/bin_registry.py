"""Bin registry — resolves bin names to shared cache bin instances.

The registry is owned by the application's composition root (see
``cachebin.main.build_registry``) and passed explicitly to whatever needs a
cache.  Each bin is constructed lazily on first request, initialized once,
and then reused for the lifetime of the registry.

Implementation selection is resolved when the registry is built: every bin
maps to an implementation name ("database", "null", ...), and each name maps
to a factory.  An unknown implementation name is a ConfigurationError at
construction time, never a silent fallback.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping

import structlog

from cachebin.interfaces.cache_bin import ICacheBin
from cachebin.models.cache import CacheSession
from cachebin.providers.cache.null_cache import NullCacheBin
from cachebin.utils.errors import ConfigurationError, StorageUnavailableError
from cachebin.utils.logging import bin_context

logger = structlog.get_logger(logger_name=__name__)

BinFactory = Callable[[str], ICacheBin]


class CacheBinRegistry:
    """Process-wide home of one cache bin instance per bin name.

    Parameters
    ----------
    factories:
        Implementation name → callable building a bin for a given bin name.
    default_class:
        Implementation used for bins without an explicit mapping.
    bin_classes:
        Bin name → implementation name overrides.
    """

    def __init__(
        self,
        factories: Mapping[str, BinFactory],
        default_class: str,
        bin_classes: Mapping[str, str] | None = None,
    ) -> None:
        self._factories = dict(factories)
        self._default_class = default_class
        self._bin_classes = dict(bin_classes or {})
        self._instances: dict[str, ICacheBin] = {}
        self._lock = asyncio.Lock()

        self._check_implementation(default_class, "default")
        for bin_name, impl in self._bin_classes.items():
            self._check_implementation(impl, bin_name)

    def _check_implementation(self, impl: str, bin_name: str) -> None:
        if impl not in self._factories:
            known = ", ".join(sorted(self._factories)) or "none"
            msg = f"Unknown cache implementation {impl!r} for bin {bin_name!r} (known: {known})"
            raise ConfigurationError(msg)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    @property
    def default_class(self) -> str:
        return self._default_class

    def implementation_for(self, bin_name: str) -> str:
        """Return the implementation name configured for *bin_name*."""
        return self._bin_classes.get(bin_name, self._default_class)

    def configured_bins(self) -> list[str]:
        """Bins with an explicit implementation mapping."""
        return sorted(self._bin_classes)

    def active_bins(self) -> list[str]:
        """Bins that have been instantiated so far."""
        return sorted(self._instances)

    async def get(self, bin_name: str) -> ICacheBin:
        """Return the shared instance for *bin_name*, creating it on first use.

        If the bin's storage cannot be provisioned, a :class:`NullCacheBin`
        is installed in its place so callers keep working without a cache.
        """
        cache_bin = self._instances.get(bin_name)
        if cache_bin is not None:
            return cache_bin

        async with self._lock:
            # Another task may have built it while we waited.
            cache_bin = self._instances.get(bin_name)
            if cache_bin is not None:
                return cache_bin

            impl = self.implementation_for(bin_name)
            cache_bin = self._factories[impl](bin_name)
            try:
                await cache_bin.initialize()
            except StorageUnavailableError as exc:
                logger.warning(
                    "cache_bin_unavailable",
                    bin=bin_name,
                    implementation=impl,
                    error=str(exc),
                )
                cache_bin = NullCacheBin(bin_name)

            self._instances[bin_name] = cache_bin
            logger.info("cache_bin_ready", bin=bin_name, implementation=cache_bin.get_provider_name())
            return cache_bin

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    async def expire_all(self, session: CacheSession | None = None) -> None:
        """Run ``expire()`` on every configured or already active bin."""
        names = sorted(set(self._bin_classes) | set(self._instances))
        for bin_name in names:
            with bin_context(bin_name):
                cache_bin = await self.get(bin_name)
                await cache_bin.expire(session)
