"""Config Registry: the immutable set of tracked targets."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional

from confhistory.archive.retention import RetentionPolicy
from confhistory.config import HistoryConfig, TargetSettings
from confhistory.errors import NotFoundError


class BackupStrategy(str, Enum):
    """How a target is captured and restored."""

    SINGLE = "single"
    MULTIPLE = "multiple"
    DIRECTORY = "directory"


@dataclass(frozen=True, slots=True)
class Target:
    """One tracked unit of live configuration.

    Attributes:
        name: Human label, used as the display name of ``single`` targets.
        group: Relative live path; also the archive namespace.
        strategy: Capture and restore strategy.
        id_field: Identifier field of ``multiple`` elements.
        label_field: Display-name field of ``multiple`` elements.
        retention: Per-target overrides; unset axes fall back to the defaults.
    """

    name: str
    group: str
    strategy: BackupStrategy
    id_field: Optional[str] = None
    label_field: Optional[str] = None
    retention: RetentionPolicy = RetentionPolicy()

    @classmethod
    def from_settings(cls, settings: TargetSettings) -> "Target":
        """Build a target from validated settings."""
        strategy = BackupStrategy(settings.backup_type)
        label_field = None
        if strategy is BackupStrategy.MULTIPLE:
            label_field = settings.friendly_name_node or settings.id_node
        return cls(
            name=settings.name,
            group=settings.path,
            strategy=strategy,
            id_field=settings.id_node if strategy is BackupStrategy.MULTIPLE else None,
            label_field=label_field,
            retention=RetentionPolicy(
                max_count=settings.max_backups,
                max_age_days=settings.max_backup_age_days,
            ),
        )


@dataclass(frozen=True)
class ConfigRegistry:
    """Targets plus the roots and default thresholds they are resolved against."""

    live_root: Path
    archive_root: Path
    targets: tuple[Target, ...] = ()
    default_retention: RetentionPolicy = RetentionPolicy()

    @classmethod
    def from_config(cls, config: HistoryConfig) -> "ConfigRegistry":
        """Build the registry from validated settings."""
        return cls(
            live_root=Path(config.config_dir).expanduser(),
            archive_root=Path(config.archive_dir).expanduser(),
            targets=tuple(Target.from_settings(entry) for entry in config.targets),
            default_retention=RetentionPolicy(
                max_count=config.default_max_backups,
                max_age_days=config.default_max_backup_age_days,
            ),
        )

    def __iter__(self) -> Iterator[Target]:
        """Iterate targets in configuration order."""
        return iter(self.targets)

    def get(self, group: str) -> Target:
        """Return the target whose group is ``group``.

        Raises:
            NotFoundError: If no target uses that group.
        """
        for target in self.targets:
            if target.group == group:
                return target
        raise NotFoundError(f"Config not found: {group}")

    def live_path(self, target: Target) -> Path:
        """Return the live file (or directory, for ``directory`` targets) of ``target``."""
        return self.live_root / target.group

    def effective_retention(self, target: Target) -> RetentionPolicy:
        """Return ``target``'s retention with unset fields taken from the defaults."""
        return target.retention.with_fallback(self.default_retention)


__all__ = ["BackupStrategy", "Target", "ConfigRegistry"]
