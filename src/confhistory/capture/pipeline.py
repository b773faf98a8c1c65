"""Producers of capture jobs: manual capture-all and change notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from confhistory.errors import HistoryError, describe
from confhistory.registry import BackupStrategy, ConfigRegistry, Target

from .models import CaptureJob
from .reader import read_target
from .worker import CaptureWorker

LOGGER = logging.getLogger(__name__)

PathObserver = Callable[[Path, Target], None]


@dataclass(slots=True)
class CaptureSummary:
    """Outcome of a capture-all run.

    Attributes:
        attempted: Groups that were read, in registry order.
        enqueued: Number of jobs handed to the worker.
        failures: Read or parse failure message per group.
    """

    attempted: list[str] = field(default_factory=list)
    enqueued: int = 0
    failures: dict[str, str] = field(default_factory=dict)


class CapturePipeline:
    """Turn targets into capture jobs and hand them to the worker."""

    def __init__(
        self,
        registry: ConfigRegistry,
        worker: CaptureWorker,
        *,
        observer: Optional[PathObserver] = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            registry: Targets and live root.
            worker: Consumer for produced jobs.
            observer: Called with every live path read, so watches can be
                registered lazily the first time a path is seen.
        """
        self._registry = registry
        self._worker = worker
        self._observer = observer

    def set_observer(self, observer: Optional[PathObserver]) -> None:
        """Install or clear the callback told about every live path captured.

        Args:
            observer: Callable receiving ``(path, target)``, or ``None``.
        """
        self._observer = observer

    def jobs_for(self, target: Target, *, changed_path: Optional[Path] = None) -> list[CaptureJob]:
        """Read ``target`` and wrap each captured version in a job.

        Raises:
            HistoryError: If reading or parsing the live content fails.
        """
        self._notify(target, changed_path)
        versions = read_target(self._registry, target, changed_path=changed_path)
        return [CaptureJob(target=target, version=version) for version in versions]

    def capture(self, target: Target, *, changed_path: Optional[Path] = None) -> int:
        """Read ``target`` and enqueue its jobs; return the number enqueued."""
        return self._worker.submit_many(self.jobs_for(target, changed_path=changed_path))

    def capture_all(self) -> CaptureSummary:
        """Read every target and enqueue the resulting jobs.

        Returns once every target has been attempted. A failure on one target
        is logged and recorded; the remaining targets are still captured.
        """
        summary = CaptureSummary()
        for target in self._registry:
            summary.attempted.append(target.group)
            try:
                summary.enqueued += self.capture(target)
            except HistoryError as exc:
                LOGGER.error("Error reading config %s: %s", target.group, describe(exc))
                summary.failures[target.group] = str(exc)
        return summary

    def _notify(self, target: Target, changed_path: Optional[Path]) -> None:
        if self._observer is None:
            return
        live_path = self._registry.live_path(target)
        if target.strategy is BackupStrategy.DIRECTORY:
            # The directory itself is watched; files inside map back to it.
            self._observer(live_path, target)
        else:
            self._observer(changed_path or live_path, target)


__all__ = ["CapturePipeline", "CaptureSummary", "PathObserver"]
