"""
Configuration module for Wasilah exports.

Layered configuration loading (CLI > env > user > project > defaults)
validated with pydantic.
"""

from wasilah.config.defaults import (
    DEFAULT_CONFIG,
    DEFAULT_CONFIG_RELATIVE_PATH,
    ENV_PREFIX,
    PROJECT_CONFIG_FILENAME,
    USER_CONFIG_PATH,
)
from wasilah.config.settings import (
    ConfigService,
    ExportSettings,
    FlatSettings,
    GeneralSettings,
    Settings,
    config_service,
    get_settings,
    reload_settings,
)

__all__ = [
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_RELATIVE_PATH",
    "ENV_PREFIX",
    "PROJECT_CONFIG_FILENAME",
    "USER_CONFIG_PATH",
    "ConfigService",
    "ExportSettings",
    "FlatSettings",
    "GeneralSettings",
    "Settings",
    "config_service",
    "get_settings",
    "reload_settings",
]
