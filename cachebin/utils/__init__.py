"""Utility modules for cachebin.

- **errors** -- Exception hierarchy rooted at CacheBinError; storage,
  serialization and configuration failures each get their own subclass so
  callers can choose between failing open and failing loudly.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production, plus
  ``bin_context`` for tagging events with the bin they concern.
"""

# -- Exception hierarchy ---------------------------------------------------
from cachebin.utils.errors import (
    CacheBinError,
    CacheSerializationError,
    ConfigurationError,
    InvalidBatchSizeError,
    StorageUnavailableError,
)

# -- Structured logging ----------------------------------------------------
from cachebin.utils.logging import bin_context, configure_logging, get_logger

__all__ = [
    "CacheBinError",
    "CacheSerializationError",
    "ConfigurationError",
    "InvalidBatchSizeError",
    "StorageUnavailableError",
    "bin_context",
    "configure_logging",
    "get_logger",
]
