"""Apply archived versions back onto the live configuration."""

from __future__ import annotations

import logging
from pathlib import Path

from confhistory import documents
from confhistory.archive import ArchiveStore
from confhistory.errors import ArchiveIOError, ParseError
from confhistory.registry import BackupStrategy, ConfigRegistry

LOGGER = logging.getLogger(__name__)


def merge_element(live: bytes, archived: bytes, id_field: str, *, source: str = "live config") -> bytes:
    """Replace the first live element whose ``id_field`` matches the archived one.

    Every other element and the element order are kept. When nothing matches
    the document is returned re-rendered but otherwise unchanged. The whole
    document is re-rendered either way, so formatting and comments of
    untouched elements are not preserved.

    Args:
        live: Current live document, a top-level sequence.
        archived: One archived element.
        id_field: Identifier field name.
        source: Label used in error messages.

    Returns:
        bytes: The rendered, merged document.

    Raises:
        ParseError: If either document cannot be parsed or has the wrong shape.
    """
    element = documents.load_element(archived, "archived version")
    archived_id = documents.field_value(element, id_field)
    if archived_id is None:
        raise ParseError(f"Archived version has no {id_field!r} value")

    sequence = documents.load_sequence(live, source)
    for position, candidate in enumerate(sequence):
        if documents.field_value(candidate, id_field) == archived_id:
            sequence[position] = element
            break
    else:
        LOGGER.warning("No element with %s=%r found in %s; nothing replaced", id_field, archived_id, source)
    return documents.render(sequence)


class RestoreEngine:
    """Restore one archived version using the target's strategy."""

    def __init__(self, registry: ConfigRegistry, store: ArchiveStore) -> None:
        self._registry = registry
        self._store = store

    def restore(self, group: str, item_id: str, filename: str) -> Path:
        """Write the archived version back to the live configuration.

        Returns:
            Path: The live file that was written.

        Raises:
            NotFoundError: If the target or version does not exist.
            ParseError: If a partial restore cannot parse either document.
            ArchiveIOError: If the live file cannot be read or written.
        """
        target = self._registry.get(group)
        blob = self._store.read_version(group, item_id, filename)
        live_path = self._registry.live_path(target)

        if target.strategy is BackupStrategy.SINGLE:
            _write_live(live_path, blob, f"{group}/{item_id}")
        elif target.strategy is BackupStrategy.DIRECTORY:
            live_path = live_path / item_id
            _write_live(live_path, blob, f"{group}/{item_id}")
        elif target.strategy is BackupStrategy.MULTIPLE:
            try:
                current = live_path.read_bytes()
            except OSError as exc:
                raise ArchiveIOError(f"Failed to read existing config file {group}") from exc
            merged = merge_element(current, blob, target.id_field or "", source=group)
            _write_live(live_path, merged, f"{group}/{item_id}")
        else:
            raise ValueError(f"Unsupported backup strategy {target.strategy!r}")

        LOGGER.info("Backup restored: %s/%s/%s -> %s", group, item_id, filename, live_path)
        return live_path


def _write_live(path: Path, data: bytes, label: str) -> None:
    try:
        path.write_bytes(data)
    except OSError as exc:
        raise ArchiveIOError(f"Failed to restore backup for {label}") from exc


__all__ = ["RestoreEngine", "merge_element"]
