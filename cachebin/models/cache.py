"""Cache entry and session watermark models.

Defines the Pydantic v2 models that flow through every cache bin:

    CacheEntry       one stored row, returned by ``get`` / ``get_multiple``
    CacheSession     the per-consumer watermark, passed in by the caller
    MultiGetResult   the (found, missing) pair returned by ``get_multiple``

Expiry sentinels:
    CACHE_PERMANENT (0)    never removed by time-based policy
    CACHE_TEMPORARY (-1)   removed by the next ``expire()`` that purges
    any other value        Unix timestamp after which the row may be purged
"""

from __future__ import annotations

from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field

CACHE_PERMANENT = 0
CACHE_TEMPORARY = -1


# ---------------------------------------------------------------------------
# CacheEntry: one row of a bin.
# ---------------------------------------------------------------------------
class CacheEntry(BaseModel):
    """A single cached item.

    ``data`` is already decoded: strings come back verbatim, everything else
    is the JSON-decoded structure that was passed to ``set``.
    """

    model_config = ConfigDict(frozen=True)

    cid: str
    data: Any = None
    # Unix seconds of the last write.
    created: int = 0
    # CACHE_PERMANENT, CACHE_TEMPORARY or a Unix timestamp.
    expire: int = CACHE_PERMANENT
    # True when ``data`` was JSON-encoded on the way in.
    serialized: bool = False

    @property
    def is_permanent(self) -> bool:
        return self.expire == CACHE_PERMANENT

    @property
    def is_temporary(self) -> bool:
        return self.expire == CACHE_TEMPORARY


# ---------------------------------------------------------------------------
# CacheSession: the read-your-own-staleness watermark.
# ---------------------------------------------------------------------------
class CacheSession(BaseModel):
    """Per-consumer invalidation watermark.

    ``expire()`` sets ``cache`` to the current time when a minimum cache
    lifetime is configured.  Afterwards, reads made with this session treat
    non-permanent entries created before ``cache`` as misses, while other
    sessions keep seeing them until the flush window closes.

    The object is mutated in place; persisting it between requests is the
    caller's job.
    """

    cache: int = Field(default=0, ge=0)


class MultiGetResult(NamedTuple):
    """Result of a multi-id lookup: hits by id, and the ids that missed."""

    found: dict[str, CacheEntry]
    missing: list[str]
