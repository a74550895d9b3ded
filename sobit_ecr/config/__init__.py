"""Client configuration."""

from sobit_ecr.config.settings import ClientSettings, get_settings

__all__ = ["ClientSettings", "get_settings"]
