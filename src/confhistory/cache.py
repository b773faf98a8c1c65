"""In-memory index of archive metadata shared by the pipeline and readers."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator, Mapping, Optional

from confhistory.archive.models import ArchiveMetadata

MetadataKey = tuple[str, str]


class ReadWriteLock:
    """Many concurrent readers or one writer; waiting writers block new readers."""

    def __init__(self) -> None:
        self._condition = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        """Hold the lock shared; waits while a writer holds or awaits it."""
        with self._condition:
            while self._writer or self._waiting_writers:
                self._condition.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._condition:
                self._readers -= 1
                if not self._readers:
                    self._condition.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        """Hold the lock exclusively."""
        with self._condition:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._condition.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._condition:
                self._writer = False
                self._condition.notify_all()


class MetadataCache:
    """Mapping from ``(group, id)`` to :class:`ArchiveMetadata`.

    Entries are immutable and are only ever replaced or removed whole, so a
    reader sees either the previous or the next entry, never a mix. The guard
    is held for the in-memory mutation only; callers finish all filesystem
    work before publishing.
    """

    def __init__(self, lock: Optional[ReadWriteLock] = None) -> None:
        self._lock = lock or ReadWriteLock()
        self._entries: dict[MetadataKey, ArchiveMetadata] = {}

    def rebuild(self, entries: Mapping[MetadataKey, ArchiveMetadata]) -> None:
        """Replace the whole index, typically from a startup scan."""
        fresh = dict(entries)
        with self._lock.write():
            self._entries = fresh

    def publish(self, metadata: ArchiveMetadata) -> None:
        """Insert or replace the entry for ``metadata.key``."""
        with self._lock.write():
            self._entries[metadata.key] = metadata

    def evict(self, group: str, item_id: str) -> bool:
        """Remove the entry for ``(group, item_id)``; return whether one existed."""
        with self._lock.write():
            return self._entries.pop((group, item_id), None) is not None

    def get(self, group: str, item_id: str) -> Optional[ArchiveMetadata]:
        """Return cached metadata for ``(group, item_id)``, if any."""
        with self._lock.read():
            return self._entries.get((group, item_id))

    def list_all(self) -> list[ArchiveMetadata]:
        """Return all entries sorted by display name."""
        with self._lock.read():
            snapshot = list(self._entries.values())
        return sorted(snapshot, key=lambda entry: (entry.display_name, entry.group, entry.id))

    def __len__(self) -> int:
        """Number of cached configs."""
        with self._lock.read():
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        """Whether ``key``, a ``(group, id)`` pair, is cached."""
        with self._lock.read():
            return key in self._entries


__all__ = ["MetadataCache", "MetadataKey", "ReadWriteLock"]
