"""Configuration package for runtime settings and startup validation."""

from .settings import GuestEnvSettings, SettingsLoadError, config_load_settings

__all__ = ["GuestEnvSettings", "SettingsLoadError", "config_load_settings"]
