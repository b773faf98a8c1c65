"""Settings models, layered resolution, and the settings file manager."""

from confhistory.errors import ConfigError

from .manager import DEFAULT_CONFIG_PATH, ENV_PREFIX, ConfigManager, env_overrides
from .models import HistoryConfig, LoggingSettings, TargetSettings, WatchSettings
from .resolver import resolve_with_precedence

__all__ = [
    "ConfigError",
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "ENV_PREFIX",
    "HistoryConfig",
    "LoggingSettings",
    "TargetSettings",
    "WatchSettings",
    "env_overrides",
    "resolve_with_precedence",
]
