"""Retention policy enforced against one archive directory after each write."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Optional

from .naming import is_version_file, parse_version_filename

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RetentionPolicy:
    """Retention thresholds; ``None`` on either axis means no limit."""

    max_count: Optional[int] = None
    max_age_days: Optional[int] = None

    def with_fallback(self, default: "RetentionPolicy") -> "RetentionPolicy":
        """Return a policy whose unset axes are taken from ``default``."""
        return RetentionPolicy(
            max_count=self.max_count if self.max_count is not None else default.max_count,
            max_age_days=(
                self.max_age_days if self.max_age_days is not None else default.max_age_days
            ),
        )

    @property
    def unlimited(self) -> bool:
        """Whether neither a count nor an age limit is set."""
        return self.max_count is None and self.max_age_days is None


@dataclass(frozen=True, slots=True)
class Eviction:
    """A version selected for deletion and the rule that selected it."""

    filename: str
    reason: str


def plan_evictions(
    filenames: Iterable[str],
    policy: RetentionPolicy,
    *,
    now: datetime,
) -> list[Eviction]:
    """Select versions violating ``policy``.

    The count and age rules are independent: a file failing either one is
    selected. Filenames that do not parse as timestamps are exempt from the
    age rule.

    Args:
        filenames: Version filenames in the directory.
        policy: Effective retention thresholds.
        now: Reference time for the age rule.

    Returns:
        list[Eviction]: Selected versions, newest first.
    """
    ordered = sorted(filenames, reverse=True)
    cutoff = None
    if policy.max_age_days is not None:
        cutoff = now - timedelta(days=policy.max_age_days)

    selected: list[Eviction] = []
    for position, filename in enumerate(ordered):
        if policy.max_count is not None and position >= policy.max_count:
            selected.append(Eviction(filename, "exceeded max backups limit"))
            continue
        if cutoff is None:
            continue
        captured = parse_version_filename(filename)
        if captured is not None and captured < cutoff:
            selected.append(Eviction(filename, "older than max backup age"))
    return selected


def evict(directory: Path, policy: RetentionPolicy, *, now: datetime | None = None) -> list[str]:
    """Delete versions in ``directory`` that violate ``policy``.

    Deletion is best-effort: a failure is logged and the remaining evictions
    still run.

    Returns:
        list[str]: Filenames that were removed.
    """
    if policy.unlimited:
        return []
    now = now or datetime.now(timezone.utc)
    filenames = [path.name for path in directory.iterdir() if is_version_file(path)]

    removed: list[str] = []
    for eviction in plan_evictions(filenames, policy, now=now):
        path = directory / eviction.filename
        try:
            path.unlink()
        except OSError as exc:
            LOGGER.error("Failed to remove old backup %s (%s): %s", path, eviction.reason, exc)
            continue
        LOGGER.info("Removed old backup %s: %s", path, eviction.reason)
        removed.append(eviction.filename)
    return removed


__all__ = ["RetentionPolicy", "Eviction", "plan_evictions", "evict"]
