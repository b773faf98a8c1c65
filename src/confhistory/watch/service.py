"""Filesystem change detection feeding the capture pipeline."""

from __future__ import annotations

import logging
import os
import queue
import threading
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from confhistory.capture import CapturePipeline, CaptureWorker
from confhistory.errors import HistoryError, describe
from confhistory.registry import BackupStrategy, Target

LOGGER = logging.getLogger(__name__)


def _normalize(path: Path | str) -> Path:
    return Path(os.path.abspath(os.fspath(path)))


class ChangeDetector:
    """Watch live configuration files and enqueue captures when they change.

    Watchdog callbacks only push paths onto an internal queue. A dedicated
    thread drains that queue, rereads the changed target, and hands capture
    jobs to the worker. Watches are registered per directory, lazily, the
    first time a target's live path is seen; targets sharing a directory share
    one OS-level watch.
    """

    def __init__(
        self,
        pipeline: CapturePipeline,
        worker: CaptureWorker,
        *,
        observer_factory: Callable[[], BaseObserver] = Observer,
    ) -> None:
        """Initialize the detector.

        Args:
            pipeline: Pipeline used to read targets into jobs.
            worker: Worker receiving the jobs.
            observer_factory: Factory for the watchdog observer.
        """
        self._pipeline = pipeline
        self._worker = worker
        self._observer_factory = observer_factory
        self._observer: BaseObserver | None = None
        self._events: queue.Queue[Path | None] = queue.Queue()
        self._handler = _WatchEventHandler(self._events)
        self._lock = threading.Lock()
        self._registrations: dict[Path, Target] = {}
        self._directories: set[Path] = set()
        self._scheduled: set[Path] = set()
        self._thread: threading.Thread | None = None

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    @property
    def watched_directories(self) -> set[Path]:
        """Directories currently scheduled on the running observer."""
        with self._lock:
            return set(self._scheduled)

    def register(self, path: Path, target: Target) -> None:
        """Map ``path`` to ``target`` and make sure its directory is watched.

        For ``directory`` targets ``path`` is the live directory itself;
        otherwise the containing directory is watched.
        """
        path = _normalize(path)
        directory = path if target.strategy is BackupStrategy.DIRECTORY else path.parent
        with self._lock:
            known = self._registrations.get(path)
            self._registrations[path] = target
            if known is None:
                LOGGER.info("Tracking %s for %s", path, target.group)
            if directory in self._directories:
                return
            self._directories.add(directory)
            if self._observer is not None:
                self._schedule(directory)

    def lookup(self, path: Path | str) -> Optional[Target]:
        """Return the target tracking ``path``, if any."""
        path = _normalize(path)
        with self._lock:
            target = self._registrations.get(path)
            if target is not None:
                return target
            parent = self._registrations.get(path.parent)
        if parent is not None and parent.strategy is BackupStrategy.DIRECTORY:
            return parent
        return None

    def start(self) -> None:
        """Start the watchdog observer and the dispatch thread."""
        if self._observer is not None:
            raise RuntimeError("ChangeDetector is already running.")

        observer = self._observer_factory()
        with self._lock:
            self._observer = observer
            for directory in sorted(self._directories):
                self._schedule(directory)
        observer.start()
        self._thread = threading.Thread(target=self._run_loop, name="confhistory-watch", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop accepting notifications and let the dispatch thread finish."""
        with self._lock:
            observer = self._observer
            self._observer = None
            self._scheduled.clear()
        if observer is not None:
            observer.stop()
            observer.join(timeout=5)
        if self._thread is not None:
            # Unblock the queue to allow the dispatch loop to exit cleanly.
            self._events.put(None)
            self._thread.join(timeout=5)
            self._thread = None

    def dispatch(self, path: Path | str) -> int:
        """Handle one change notification.

        Untracked paths are ignored. Read and parse failures are logged and
        the event is dropped.

        Returns:
            int: Number of capture jobs enqueued.
        """
        path = _normalize(path)
        target = self.lookup(path)
        if target is None:
            LOGGER.debug("No backup options found for changed file %s", path)
            return 0

        changed_path = path if target.strategy is BackupStrategy.DIRECTORY else None
        try:
            jobs = self._pipeline.jobs_for(target, changed_path=changed_path)
        except HistoryError as exc:
            LOGGER.error("Error reading updated config from %s: %s", path, describe(exc))
            return 0
        return self._worker.submit_many(jobs)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _schedule(self, directory: Path) -> None:
        # Caller holds self._lock.
        if directory in self._scheduled or self._observer is None:
            return
        try:
            self._observer.schedule(self._handler, str(directory), recursive=False)
        except OSError as exc:
            LOGGER.error("Error adding directory watcher for %s: %s", directory, exc)
            self._directories.discard(directory)
            return
        self._scheduled.add(directory)
        LOGGER.info("Watching directory %s", directory)

    def _run_loop(self) -> None:
        while True:
            path = self._events.get()
            if path is None:
                return
            batch = [path]
            # Coalesce notifications that piled up while the last batch ran.
            while True:
                try:
                    extra = self._events.get_nowait()
                except queue.Empty:
                    break
                if extra is None:
                    self._events.put(None)
                    break
                if extra not in batch:
                    batch.append(extra)
            for changed in batch:
                try:
                    self.dispatch(changed)
                except Exception:  # pragma: no cover - keep servicing events
                    LOGGER.exception("File watcher error while handling %s", changed)


class _WatchEventHandler(FileSystemEventHandler):
    """Forward filesystem events into the detector queue."""

    def __init__(self, queue_handle: queue.Queue[Path | None]) -> None:
        self._queue = queue_handle

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle a filesystem create event."""
        self._enqueue(event.src_path, event)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle a filesystem modify event."""
        self._enqueue(event.src_path, event)

    def on_moved(self, event: FileSystemEvent) -> None:  # pragma: no cover - watchdog-specific
        """Handle a filesystem move event; editors often save by renaming over the file."""
        self._enqueue(event.dest_path, event)

    def _enqueue(self, raw_path: str | bytes, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._queue.put(_normalize(os.fsdecode(raw_path)))


__all__ = ["ChangeDetector"]
