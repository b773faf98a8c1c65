"""Configuration models describing confhistory settings."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class HistoryBaseModel(BaseModel):
    """Shared configuration for confhistory Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class TargetSettings(HistoryBaseModel):
    """One tracked configuration file or directory.

    Attributes:
        name: Human label used as the display name of ``single`` targets.
        path: Location relative to the live configuration root; doubles as the group.
        backup_type: Capture and restore strategy for the target.
        id_node: Field naming each element of a ``multiple`` document.
        friendly_name_node: Field used as the display name of ``multiple`` elements.
        max_backups: Per-target override for the retained version count.
        max_backup_age_days: Per-target override for the retained version age.
    """

    name: str
    path: str
    backup_type: Literal["single", "multiple", "directory"] = "single"
    id_node: Optional[str] = None
    friendly_name_node: Optional[str] = None
    max_backups: Optional[int] = Field(default=None, ge=1)
    max_backup_age_days: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _require_id_node(self) -> "TargetSettings":
        if self.backup_type == "multiple" and not self.id_node:
            raise ValueError(f"target {self.path!r} uses backup_type 'multiple' and needs an id_node")
        return self


class WatchSettings(HistoryBaseModel):
    """Filesystem watch and capture queue options.

    Attributes:
        enabled: Whether live files are watched for changes.
        queue_size: Maximum pending capture jobs; zero means unbounded.
        drain_timeout_seconds: Time allowed for in-flight jobs during shutdown.
    """

    enabled: bool = True
    queue_size: int = Field(default=0, ge=0)
    drain_timeout_seconds: float = Field(default=10.0, gt=0)


class LoggingSettings(HistoryBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        file: Optional log file path; console-only when unset.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "INFO"
    file: Optional[str] = None
    max_size_mb: int = 10
    backup_count: int = 5


class HistoryConfig(HistoryBaseModel):
    """Top-level configuration struct for confhistory.

    Attributes:
        config_dir: Root directory of the live configuration.
        archive_dir: Root directory of the version archive.
        default_max_backups: Process-wide retained version count.
        default_max_backup_age_days: Process-wide retained version age.
        targets: Ordered list of tracked targets.
        watch: Filesystem watch options.
        logging: Logging configuration.
    """

    config_dir: str = "/config"
    archive_dir: str = "/data/backups"
    default_max_backups: Optional[int] = Field(default=None, ge=1)
    default_max_backup_age_days: Optional[int] = Field(default=None, ge=1)
    targets: List[TargetSettings] = Field(default_factory=list)
    watch: WatchSettings = Field(default_factory=WatchSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @model_validator(mode="after")
    def _unique_paths(self) -> "HistoryConfig":
        seen: set[str] = set()
        for target in self.targets:
            if target.path in seen:
                raise ValueError(f"duplicate target path {target.path!r}")
            seen.add(target.path)
        return self


__all__ = [
    "HistoryBaseModel",
    "TargetSettings",
    "WatchSettings",
    "LoggingSettings",
    "HistoryConfig",
]
