"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

  1. config/config.yaml  — static bin → implementation mapping
  2. .env file           — local overrides (not committed)
  3. Environment vars    — set at deploy time

Only non-empty environment values override YAML ones, so an unset
``CACHE_DEFAULT_CLASS`` leaves the YAML ``default_class`` in place, and
``CACHE_BIN_CLASSES`` entries are merged bin by bin into the YAML ``bins``.
``CACHE_LIFETIME`` and ``CACHE_DB_PATH`` replace the YAML ``lifetime`` and
``db_path`` only when they are actually set; otherwise the YAML value, or
the field default when YAML has none, is used.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from cachebin.config.settings import Settings
from cachebin.utils.errors import ConfigurationError

DEFAULT_IMPLEMENTATION = "database"


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict[str, Any]:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file is treated
              as an empty configuration.
        settings: Settings to merge on top; a fresh ``Settings()`` when omitted.

    Returns:
        Fully resolved configuration dictionary with a ``cache`` section
        holding ``default_class``, ``bins``, ``lifetime`` and ``db_path``.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    # Only values given through the environment, .env or the constructor win
    # over YAML; field defaults merely fill gaps below.
    explicit = settings.model_fields_set
    cache_overrides: dict[str, Any] = {
        "bins": dict(settings.cache_bin_classes),
    }
    if "cache_lifetime" in explicit:
        cache_overrides["lifetime"] = settings.cache_lifetime
    if "cache_db_path" in explicit:
        cache_overrides["db_path"] = settings.cache_db_path
    if settings.cache_default_class:
        cache_overrides["default_class"] = settings.cache_default_class

    env_overrides = {
        "cache": cache_overrides,
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)

    cache_section = yaml_config["cache"]
    # An unquoted YAML null is "unset", not the "null" implementation.
    if not cache_section.get("default_class"):
        cache_section["default_class"] = DEFAULT_IMPLEMENTATION
    if not cache_section.get("db_path"):
        cache_section["db_path"] = settings.cache_db_path
    cache_section["lifetime"] = _resolve_lifetime(cache_section.get("lifetime"), settings.cache_lifetime)
    # YAML "bins:" with no entries loads as None.
    cache_section["bins"] = {
        str(name): str(impl) for name, impl in (cache_section.get("bins") or {}).items()
    }
    return yaml_config


def _resolve_lifetime(value: Any, default: int) -> int:
    """Validate a YAML ``lifetime`` value; ``None`` falls back to *default*."""
    if value is None:
        return default
    try:
        lifetime = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"cache.lifetime must be an integer, got {value!r}") from exc
    if lifetime < 0:
        raise ConfigurationError(f"cache.lifetime must be >= 0, got {lifetime}")
    return lifetime


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
