"""Persisted archive models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ArchiveMetadata(BaseModel):
    """Summary of one ``(group, id)`` archive directory, stored as ``metadata.json``.

    Instances are immutable so a cache entry can only ever be replaced whole.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    group: str
    id: str
    display_name: str = Field(alias="displayName")
    backup_type: str = Field(alias="backupType")
    backup_count: int = Field(alias="backupCount", ge=0)
    backups_size: int = Field(alias="backupsSize", ge=0)
    last_captured: datetime = Field(alias="lastCaptured")

    @property
    def key(self) -> tuple[str, str]:
        """Return the ``(group, id)`` identity of the entry."""
        return (self.group, self.id)


class VersionInfo(BaseModel):
    """One archived version as reported by listings."""

    filename: str
    date: datetime
    size: int


__all__ = ["ArchiveMetadata", "VersionInfo"]
