"""Custom exception hierarchy for cachebin.

All library exceptions inherit from :class:`CacheBinError`, which carries an
optional ``provider_name`` so error handlers can tell which backend (e.g.
"sqlite", "database") raised the failure.

    CacheBinError  (base -- catch-all for any cachebin error)
    +-- StorageUnavailableError  (driver / connection failure)
    +-- CacheSerializationError  (payload cannot be encoded or decoded)
    +-- InvalidBatchSizeError    (empty id collection where one is required)
    +-- ConfigurationError       (unknown implementation, bad bin name)

Reads and writes treat StorageUnavailableError as a cache miss or a dropped
write.  Explicit deletes and flushes let it propagate, and so does a
CacheSerializationError raised while storing a value.
"""


class CacheBinError(Exception):
    """Base exception for all cachebin errors.

    The ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[sqlite] database is locked``.
    """

    def __init__(
        self,
        message: str = "An unexpected cache error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Storage errors
# ---------------------------------------------------------------------------

class StorageUnavailableError(CacheBinError):
    """Raised when the backing store cannot be reached or a query fails."""

    def __init__(
        self,
        message: str = "Cache storage is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class InvalidBatchSizeError(CacheBinError):
    """Raised when a storage operation receives an empty id collection."""

    def __init__(
        self,
        message: str = "At least one cache id is required",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Payload errors
# ---------------------------------------------------------------------------

class CacheSerializationError(CacheBinError):
    """Raised when a cache payload cannot be encoded for storage."""

    def __init__(
        self,
        message: str = "Cache payload could not be serialized",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------

class ConfigurationError(CacheBinError):
    """Raised when cache configuration is invalid (unknown class, bad bin name)."""

    def __init__(
        self,
        message: str = "Invalid or missing cache configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
