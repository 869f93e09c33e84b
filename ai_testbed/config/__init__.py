"""Configuration module: Settings, the YAML override loader, and a module-level singleton."""

from ai_testbed.config.loader import apply_overrides, load_config, service_overrides
from ai_testbed.config.settings import Settings

settings = Settings()

__all__ = ["Settings", "apply_overrides", "load_config", "service_overrides", "settings"]
