"""On-disk version archive.

Layout::

    <root>/<group>/<id>/<YYYYMMDDThhmmss>.yaml
    <root>/<group>/<id>/metadata.json
"""

from __future__ import annotations

import json
import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from confhistory.errors import (
    ArchiveIOError,
    NotFoundError,
    ParseError,
    VerificationError,
    describe,
)

from .models import ArchiveMetadata, VersionInfo
from .naming import METADATA_FILENAME, is_version_file, parse_version_filename, version_filename
from .paths import sanitize_path, validate_component
from .retention import RetentionPolicy, evict

LOGGER = logging.getLogger(__name__)


class ArchiveStore:
    """Read and mutate the version tree below an archive root."""

    def __init__(self, root: Path) -> None:
        """Initialize the store.

        Args:
            root: Archive root directory; created by :meth:`initialize`.
        """
        self._root = root

    @property
    def root(self) -> Path:
        """Return the archive root directory."""
        return self._root

    def initialize(self) -> Path:
        """Create the archive root if it is missing.

        Raises:
            ArchiveIOError: If the directory cannot be created.
        """
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            LOGGER.error("Failed to create archive root %s: %s", self._root, exc)
            raise ArchiveIOError("Failed to create archive root") from exc
        return self._root

    def version_dir(self, group: str, item_id: str) -> Path:
        """Return the directory holding versions of ``(group, item_id)``."""
        sanitize_path(group, "group")
        sanitize_path(item_id, "id")
        return self._root / group / item_id

    # Capture -----------------------------------------------------------

    def write_version(
        self,
        group: str,
        item_id: str,
        content: bytes,
        captured_at: datetime,
    ) -> Path:
        """Write one version and read it back to confirm it landed.

        A second write for the same ``(group, item_id)`` within the same second
        replaces the first.

        Args:
            group: Target group.
            item_id: Item identifier within the group.
            content: Raw bytes to archive.
            captured_at: Capture timestamp used as the filename.

        Returns:
            Path: Location of the written version.

        Raises:
            ArchiveIOError: If the directory or file cannot be written.
            VerificationError: If the file cannot be read back intact.
        """
        directory = self.version_dir(group, item_id)
        path = directory / version_filename(captured_at)
        try:
            directory.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as exc:
            raise ArchiveIOError(f"Failed to save config backup for {group}/{item_id}") from exc

        try:
            stored = path.read_bytes()
        except OSError as exc:
            raise VerificationError(
                f"Backup for {group}/{item_id} was saved but cannot be read back"
            ) from exc
        if stored != content:
            raise VerificationError(
                f"Backup for {group}/{item_id} does not match the captured content"
            )
        return path

    def apply_retention(
        self,
        group: str,
        item_id: str,
        policy: RetentionPolicy,
        *,
        now: datetime | None = None,
    ) -> list[str]:
        """Evict versions of ``(group, item_id)`` that violate ``policy``."""
        return evict(self.version_dir(group, item_id), policy, now=now)

    # Listing and reading -----------------------------------------------

    def list_versions(self, group: str, item_id: str) -> list[VersionInfo]:
        """Return versions sorted newest first.

        Raises:
            NotFoundError: If no archive directory exists for ``(group, item_id)``.
        """
        directory = self.version_dir(group, item_id)
        if not directory.is_dir():
            raise NotFoundError(f"Config not found: {group}/{item_id}")

        versions: list[VersionInfo] = []
        try:
            entries = sorted(directory.iterdir())
        except OSError as exc:
            raise ArchiveIOError(f"Failed to read config folder {group}/{item_id}") from exc
        for entry in entries:
            if not is_version_file(entry):
                continue
            try:
                stat = entry.stat()
            except OSError:
                continue
            date = parse_version_filename(entry.name) or datetime.fromtimestamp(
                stat.st_mtime, tz=timezone.utc
            )
            versions.append(VersionInfo(filename=entry.name, date=date, size=stat.st_size))

        versions.sort(key=lambda version: version.date, reverse=True)
        return versions

    def read_version(self, group: str, item_id: str, filename: str) -> bytes:
        """Return the raw bytes of one version.

        Raises:
            NotFoundError: If the version does not exist. Only archived versions
                count; the metadata sidecar and non-version files are not found.
            ArchiveIOError: If the version cannot be read.
        """
        path = self._version_path(group, item_id, filename)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise ArchiveIOError(f"Failed to read backup file {filename}") from exc

    def _version_path(self, group: str, item_id: str, filename: str) -> Path:
        sanitize_path(filename, "filename")
        path = self.version_dir(group, item_id) / filename
        if not is_version_file(path):
            raise NotFoundError(f"Backup file not found: {filename}")
        return path

    # Deletion ----------------------------------------------------------

    def delete_version(self, group: str, item_id: str, filename: str) -> Optional[ArchiveMetadata]:
        """Delete one version and recompute the directory metadata.

        Returns:
            Optional[ArchiveMetadata]: Updated metadata, or ``None`` when no
            versions remain and the directory was removed.

        Raises:
            NotFoundError: If ``filename`` is not an archived version.
            ArchiveIOError: If the file cannot be removed.
        """
        path = self._version_path(group, item_id, filename)
        try:
            path.unlink()
        except OSError as exc:
            raise ArchiveIOError(f"Failed to delete backup file {filename}") from exc
        LOGGER.info("Backup deleted: %s", path)
        return self.refresh_after_deletion(group, item_id)

    def refresh_after_deletion(self, group: str, item_id: str) -> Optional[ArchiveMetadata]:
        """Rewrite the sidecar after a deletion, or remove the directory when empty."""
        directory = self.version_dir(group, item_id)
        if not any(is_version_file(entry) for entry in directory.iterdir()):
            sidecar = directory / METADATA_FILENAME
            try:
                sidecar.unlink(missing_ok=True)
            except OSError as exc:
                LOGGER.warning("Failed to remove metadata file %s: %s", sidecar, exc)
            try:
                directory.rmdir()
            except OSError as exc:
                LOGGER.warning("Failed to remove empty backup directory %s: %s", directory, exc)
            return None

        existing = self.load_metadata(group, item_id)
        if existing is None:
            raise ArchiveIOError(f"Metadata missing for {group}/{item_id}")
        return self.refresh_metadata(
            group,
            item_id,
            display_name=existing.display_name,
            backup_type=existing.backup_type,
        )

    def delete_all(self, group: str, item_id: str) -> None:
        """Remove every version and the sidecar of ``(group, item_id)``."""
        directory = self.version_dir(group, item_id)
        if not directory.is_dir():
            raise NotFoundError(f"Config directory not found: {group}/{item_id}")
        try:
            shutil.rmtree(directory)
        except OSError as exc:
            raise ArchiveIOError(f"Failed to delete config directory {group}/{item_id}") from exc
        LOGGER.info("All backups deleted for %s/%s", group, item_id)

    # Metadata ----------------------------------------------------------

    def compute_metadata(
        self,
        group: str,
        item_id: str,
        *,
        display_name: str,
        backup_type: str,
    ) -> ArchiveMetadata:
        """Derive metadata from the current directory contents."""
        directory = self.version_dir(group, item_id)
        count = 0
        size = 0
        latest: Optional[datetime] = None
        try:
            for entry in directory.iterdir():
                if not is_version_file(entry):
                    continue
                stat = entry.stat()
                count += 1
                size += stat.st_size
                stamp = parse_version_filename(entry.name) or datetime.fromtimestamp(
                    stat.st_mtime, tz=timezone.utc
                )
                if latest is None or stamp > latest:
                    latest = stamp
        except OSError as exc:
            raise ArchiveIOError(f"Failed to get directory metrics for {group}/{item_id}") from exc

        return ArchiveMetadata(
            group=group,
            id=item_id,
            display_name=display_name,
            backup_type=backup_type,
            backup_count=count,
            backups_size=size,
            last_captured=latest or datetime.now(timezone.utc),
        )

    def refresh_metadata(
        self,
        group: str,
        item_id: str,
        *,
        display_name: str,
        backup_type: str,
    ) -> ArchiveMetadata:
        """Recompute and persist the sidecar for ``(group, item_id)``."""
        metadata = self.compute_metadata(
            group, item_id, display_name=display_name, backup_type=backup_type
        )
        sidecar = self.version_dir(group, item_id) / METADATA_FILENAME
        payload = metadata.model_dump(mode="json", by_alias=True)
        try:
            sidecar.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as exc:
            raise ArchiveIOError(f"Failed to write metadata for {group}/{item_id}") from exc
        return metadata

    def load_metadata(self, group: str, item_id: str) -> Optional[ArchiveMetadata]:
        """Return the stored sidecar for ``(group, item_id)`` if present.

        Raises:
            ParseError: If the sidecar cannot be parsed.
        """
        return self._read_sidecar(self.version_dir(group, item_id) / METADATA_FILENAME, group, item_id)

    def scan_metadata(self) -> dict[tuple[str, str], ArchiveMetadata]:
        """Return every readable sidecar below the archive root keyed by ``(group, id)``.

        Directories with a missing or unreadable sidecar are skipped.
        """
        root = self.initialize()
        found: dict[tuple[str, str], ArchiveMetadata] = {}
        for sidecar in sorted(root.rglob(METADATA_FILENAME)):
            directory = sidecar.parent
            if directory.parent == root or directory == root:
                continue
            group = directory.parent.relative_to(root).as_posix()
            item_id = directory.name
            try:
                metadata = self._read_sidecar(sidecar, group, item_id)
            except ParseError as exc:
                LOGGER.warning("Skipping unreadable metadata %s: %s", sidecar, describe(exc))
                continue
            if metadata is not None:
                found[(group, item_id)] = metadata
        return found

    def _read_sidecar(self, sidecar: Path, group: str, item_id: str) -> Optional[ArchiveMetadata]:
        if not sidecar.is_file():
            return None
        try:
            data = json.loads(sidecar.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ParseError(f"Failed to parse metadata for {group}/{item_id}") from exc
        if not isinstance(data, dict):
            raise ParseError(f"Metadata for {group}/{item_id} must be a JSON object")
        data.setdefault("group", group)
        data.setdefault("id", item_id)
        try:
            return ArchiveMetadata.model_validate(data)
        except ValidationError as exc:
            raise ParseError(f"Invalid metadata for {group}/{item_id}") from exc


__all__ = [
    "ArchiveStore",
    "ArchiveMetadata",
    "VersionInfo",
    "RetentionPolicy",
    "sanitize_path",
    "validate_component",
]
