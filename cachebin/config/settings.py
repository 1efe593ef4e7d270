"""Application settings loaded from environment variables via pydantic-settings.

Values are read from two sources, highest priority first:

  1. Environment variables, e.g. ``CACHE_LIFETIME=300``
  2. A ``.env`` file in the working directory

Field ``cache_lifetime`` maps to ``CACHE_LIFETIME`` and so on.  Dict fields
such as ``cache_bin_classes`` are given as JSON in the environment:
``CACHE_BIN_CLASSES='{"page": "null"}'``.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """cachebin settings.

    Environment variables override defaults. Loaded from .env file when present.
    The instance is mutable, and cache bins read ``cache_lifetime`` on every
    call, so changing it at runtime takes effect immediately.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Storage ===
    cache_db_path: str = "data/cache.db"
    # Seconds aiosqlite waits on a locked database before giving up.
    cache_storage_timeout: float = Field(default=5.0, gt=0)

    # === Expiry policy ===
    # Minimum cache lifetime in seconds; 0 disables the flush window.
    cache_lifetime: int = Field(default=0, ge=0)
    # Upper bound on ids per DELETE ... IN (...) statement; SQLite allows at
    # most 32766 host parameters per statement.
    cache_delete_batch_size: int = Field(default=1000, ge=1, le=32766)

    # === Bin implementations ===
    # Empty string = "not configured" → YAML value or "database" is used.
    cache_default_class: str = ""
    # Per-bin overrides, bin name → implementation name ("database", "null").
    cache_bin_classes: dict[str, str] = Field(default_factory=dict)

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"
