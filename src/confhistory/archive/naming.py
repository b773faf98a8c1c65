"""Version filename helpers; the filename doubles as the chronological sort key."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S"
VERSION_SUFFIX = ".yaml"
METADATA_FILENAME = "metadata.json"


def version_filename(captured_at: datetime) -> str:
    """Return the archive filename for a capture timestamp (UTC, second precision)."""
    if captured_at.tzinfo is not None:
        captured_at = captured_at.astimezone(timezone.utc)
    return captured_at.strftime(TIMESTAMP_FORMAT) + VERSION_SUFFIX


def parse_version_filename(filename: str) -> Optional[datetime]:
    """Return the UTC timestamp encoded in ``filename`` or ``None`` if it does not parse."""
    stem = filename[: -len(VERSION_SUFFIX)] if filename.endswith(VERSION_SUFFIX) else filename
    try:
        return datetime.strptime(stem, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def is_version_file(path: Path) -> bool:
    """Return whether ``path`` is an archived version rather than the sidecar or a directory."""
    return path.is_file() and path.suffix == VERSION_SUFFIX and path.name != METADATA_FILENAME


__all__ = [
    "TIMESTAMP_FORMAT",
    "VERSION_SUFFIX",
    "METADATA_FILENAME",
    "version_filename",
    "parse_version_filename",
    "is_version_file",
]
