"""Capture job values passed from producers to the worker."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from confhistory.archive.models import ArchiveMetadata
from confhistory.registry import Target


class JobState(str, Enum):
    """Lifecycle of one capture job."""

    QUEUED = "queued"
    WRITING = "writing"
    VERIFIED = "verified"
    EVICTING = "evicting"
    METADATA_PUBLISHED = "metadata_published"
    WRITE_FAILED = "write_failed"
    METADATA_FAILED = "metadata_failed"


_TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.QUEUED: frozenset({JobState.WRITING}),
    JobState.WRITING: frozenset({JobState.VERIFIED, JobState.WRITE_FAILED}),
    JobState.VERIFIED: frozenset({JobState.EVICTING}),
    JobState.EVICTING: frozenset({JobState.METADATA_PUBLISHED, JobState.METADATA_FAILED}),
    JobState.METADATA_PUBLISHED: frozenset(),
    JobState.WRITE_FAILED: frozenset(),
    JobState.METADATA_FAILED: frozenset(),
}


def capture_timestamp() -> datetime:
    """Return the current UTC time truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


@dataclass(frozen=True, slots=True)
class CapturedVersion:
    """Content read from the live configuration, not yet archived.

    Attributes:
        group: Target group the content belongs to.
        item_id: File name (``single``/``directory``) or element identifier (``multiple``).
        content: Raw bytes to archive.
        captured_at: UTC capture time, second precision.
        display_name: Label recorded in the archive metadata.
    """

    group: str
    item_id: str
    content: bytes
    captured_at: datetime
    display_name: str


@dataclass(slots=True)
class CaptureJob:
    """One unit of work for the capture worker."""

    target: Target
    version: CapturedVersion
    state: JobState = JobState.QUEUED
    error: Optional[str] = None
    metadata: Optional[ArchiveMetadata] = None
    evicted: list[str] = field(default_factory=list)

    @property
    def finished(self) -> bool:
        """Whether the job reached a terminal state."""
        return not _TRANSITIONS[self.state]

    def advance(self, state: JobState) -> None:
        """Move to ``state``.

        Raises:
            ValueError: If the transition is not allowed from the current state.
        """
        if state not in _TRANSITIONS[self.state]:
            raise ValueError(f"Invalid capture job transition {self.state.value} -> {state.value}")
        self.state = state


__all__ = ["JobState", "CapturedVersion", "CaptureJob", "capture_timestamp"]
