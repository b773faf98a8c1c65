"""Layered settings resolution: defaults, then file, environment, and CLI."""

from __future__ import annotations

from collections.abc import Mapping
from copy import deepcopy
from typing import Any, Optional

from pydantic import ValidationError

from confhistory.errors import ConfigError

from .models import HistoryConfig


def resolve_with_precedence(
    *,
    defaults: HistoryConfig,
    file_overrides: Optional[Mapping[str, Any]] = None,
    env_overrides: Optional[Mapping[str, Any]] = None,
    cli_overrides: Optional[Mapping[str, Any]] = None,
) -> HistoryConfig:
    """Overlay each settings layer on ``defaults`` and validate the result.

    Later layers win. Keys may be dotted (``watch.queue_size``) or nested.

    Raises:
        ConfigError: If a layer is malformed or the merged settings are invalid.
    """
    merged = defaults.model_dump(mode="python")
    for source, layer in (
        ("file", file_overrides),
        ("environment", env_overrides),
        ("cli", cli_overrides),
    ):
        if layer:
            merged = merge_settings(merged, expand_dotted(layer, source=source))

    try:
        return HistoryConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Settings failed validation: {exc}") from exc


def expand_dotted(layer: Mapping[str, Any], *, source: str = "override") -> dict[str, Any]:
    """Turn ``{"watch.queue_size": 8}`` into ``{"watch": {"queue_size": 8}}``."""
    if not isinstance(layer, Mapping):
        raise ConfigError(f"{source} settings must be a mapping, got {type(layer).__name__}")

    expanded: dict[str, Any] = {}
    for key, value in layer.items():
        if not isinstance(key, str):
            raise ConfigError(f"{source} setting names must be strings, got {key!r}")
        head, *rest = key.split(".")
        if isinstance(value, Mapping):
            value = expand_dotted(value, source=source)
        for segment in reversed(rest):
            value = {segment: value}
        current = expanded.get(head)
        if isinstance(current, dict) and isinstance(value, dict):
            value = merge_settings(current, value)
        expanded[head] = value
    return expanded


def merge_settings(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively overlay ``override`` on ``base``.

    Sequences such as ``targets`` are replaced whole, never concatenated.
    """
    result = {key: deepcopy(value) for key, value in base.items()}
    for key, value in override.items():
        existing = result.get(key)
        if isinstance(existing, Mapping) and isinstance(value, Mapping):
            result[key] = merge_settings(existing, value)
        else:
            result[key] = deepcopy(value)
    return result


__all__ = ["expand_dotted", "merge_settings", "resolve_with_precedence"]
