"""Settings file handling for confhistory."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import yaml

from confhistory.errors import ConfigError

from .models import HistoryConfig
from .resolver import resolve_with_precedence

DEFAULT_CONFIG_PATH = Path("~/.confhistory/config.yaml")
ENV_PREFIX = "CONFHISTORY__"
_HEADER = (
    "# confhistory configuration file\n"
    "# Tracked files go under `targets`; their paths are relative to config_dir.\n"
)


def env_overrides(env: Mapping[str, str], prefix: str = ENV_PREFIX) -> dict[str, Any]:
    """Collect ``CONFHISTORY__SECTION__KEY`` variables as dotted overrides.

    Values are parsed as YAML scalars so numbers and booleans keep their type;
    a value that is not valid YAML is kept as the raw string.
    """
    overrides: dict[str, Any] = {}
    for name, raw in env.items():
        if not name.startswith(prefix):
            continue
        segments = [part.lower() for part in name[len(prefix) :].split("__") if part]
        if not segments:
            continue
        try:
            value: Any = yaml.safe_load(raw)
        except yaml.YAMLError:
            value = raw
        overrides[".".join(segments)] = value
    return overrides


class ConfigManager:
    """Locate, create, read, and write the settings file."""

    def __init__(
        self,
        config_path: Optional[Path] = None,
        *,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Initialize the manager.

        Args:
            config_path: Settings file; defaults to ``~/.confhistory/config.yaml``.
            env: Environment consulted for overrides; defaults to ``os.environ``.
        """
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = os.environ if env is None else env

    @property
    def config_path(self) -> Path:
        """Location of the settings file."""
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Optional[Mapping[str, Any]] = None,
        include_env: bool = True,
        ensure_file: bool = True,
    ) -> HistoryConfig:
        """Return validated settings with file, environment, and CLI layers applied.

        Args:
            cli_overrides: Dotted-key overrides taking precedence over everything else.
            include_env: Whether ``CONFHISTORY__`` variables are applied.
            ensure_file: Create the settings file with defaults when it is missing.

        Returns:
            HistoryConfig: The merged settings.

        Raises:
            ConfigError: If the file cannot be read or the settings are invalid.
        """
        if ensure_file:
            self.ensure_exists()
        return resolve_with_precedence(
            defaults=HistoryConfig(),
            file_overrides=self.read(),
            env_overrides=env_overrides(self._env) if include_env else None,
            cli_overrides=cli_overrides,
        )

    def ensure_exists(self) -> Path:
        """Write a default settings file if none exists yet."""
        if not self._config_path.exists():
            self.save(HistoryConfig())
        return self._config_path

    def read(self) -> dict[str, Any]:
        """Return the raw mapping stored in the settings file, empty when absent."""
        path = self._config_path
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise ConfigError(f"Cannot read settings file {path}: {exc}") from exc

        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Settings file {path} is not valid YAML: {exc}") from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Settings file {path} must contain a mapping at the top level")
        return data

    def save(self, config: Union[HistoryConfig, Mapping[str, Any]]) -> None:
        """Write ``config`` to the settings file with a generated header."""
        if isinstance(config, HistoryConfig):
            data = config.model_dump(mode="python")
        else:
            data = dict(config)
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        body = yaml.safe_dump(data, sort_keys=False)
        try:
            self._config_path.parent.mkdir(parents=True, exist_ok=True)
            self._config_path.write_text(f"{_HEADER}# Last updated: {stamp}\n{body}", encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Cannot write settings file {self._config_path}: {exc}") from exc


__all__ = ["ConfigManager", "DEFAULT_CONFIG_PATH", "ENV_PREFIX", "env_overrides"]
