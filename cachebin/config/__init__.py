"""Cache configuration: Settings, load_config and the shared settings instance."""

from cachebin.config.loader import load_config
from cachebin.config.settings import Settings

settings = Settings()

__all__ = ["Settings", "load_config", "settings"]
