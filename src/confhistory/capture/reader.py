"""Per-strategy readers turning live configuration into captured versions."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from confhistory import documents
from confhistory.errors import ArchiveIOError
from confhistory.registry import BackupStrategy, ConfigRegistry, Target

from .models import CapturedVersion, capture_timestamp

LOGGER = logging.getLogger(__name__)


def read_target(
    registry: ConfigRegistry,
    target: Target,
    *,
    changed_path: Optional[Path] = None,
    now: Optional[datetime] = None,
) -> list[CapturedVersion]:
    """Read the current content of ``target``.

    Args:
        registry: Registry providing the live root.
        target: Target to read.
        changed_path: For ``directory`` targets, the single file that changed;
            every file in the directory is read when omitted.
        now: Capture timestamp shared by all returned versions.

    Returns:
        list[CapturedVersion]: One version per file or sequence element.

    Raises:
        ArchiveIOError: If a live file cannot be read.
        ParseError: If a live document is malformed or has the wrong shape.
    """
    captured_at = now or capture_timestamp()
    live_path = registry.live_path(target)

    if target.strategy is BackupStrategy.SINGLE:
        return [_read_file(target, live_path, captured_at, display_name=target.name)]

    if target.strategy is BackupStrategy.DIRECTORY:
        if changed_path is not None:
            return [_read_file(target, changed_path, captured_at)]
        return [
            _read_file(target, path, captured_at)
            for path in _directory_files(live_path, target.group)
        ]

    if target.strategy is BackupStrategy.MULTIPLE:
        return _read_elements(target, live_path, captured_at)

    raise ValueError(f"Unsupported backup strategy {target.strategy!r}")


def _read_bytes(path: Path, label: str) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise ArchiveIOError(f"Failed to read file {label}") from exc


def _label(target: Target, path: Path) -> str:
    # Group-relative name used in error messages.
    if target.strategy is BackupStrategy.DIRECTORY:
        return f"{target.group}/{path.name}"
    return target.group


def _read_file(
    target: Target,
    path: Path,
    captured_at: datetime,
    *,
    display_name: Optional[str] = None,
) -> CapturedVersion:
    label = _label(target, path)
    content = _read_bytes(path, label)
    documents.load_element(content, label)
    return CapturedVersion(
        group=target.group,
        item_id=path.name,
        content=content,
        captured_at=captured_at,
        display_name=display_name or path.name,
    )


def _directory_files(directory: Path, label: str) -> list[Path]:
    try:
        return sorted(path for path in directory.iterdir() if path.is_file())
    except OSError as exc:
        raise ArchiveIOError(f"Failed to read directory {label}") from exc


def _read_elements(target: Target, path: Path, captured_at: datetime) -> list[CapturedVersion]:
    elements = documents.load_sequence(_read_bytes(path, target.group), target.group)
    versions: list[CapturedVersion] = []
    for position, element in enumerate(elements):
        item_id = documents.field_value(element, target.id_field or "")
        if not item_id:
            LOGGER.warning(
                "Skipping element %d of %s without a %r value", position, path, target.id_field
            )
            continue
        label = documents.field_value(element, target.label_field or "") or item_id
        versions.append(
            CapturedVersion(
                group=target.group,
                item_id=item_id,
                content=documents.render(element),
                captured_at=captured_at,
                display_name=label,
            )
        )
    return versions


__all__ = ["read_target"]
