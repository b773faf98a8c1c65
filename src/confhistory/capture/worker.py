"""Single-consumer worker that archives captured versions."""

from __future__ import annotations

import logging
import queue
import threading
from datetime import datetime
from typing import Callable, Iterable, Optional

from confhistory.archive import ArchiveStore
from confhistory.cache import MetadataCache
from confhistory.errors import HistoryError, describe
from confhistory.registry import ConfigRegistry

from .models import CaptureJob, JobState

LOGGER = logging.getLogger(__name__)


class CaptureWorker:
    """Consume capture jobs: write, verify, evict, and publish metadata.

    One consumer thread serializes every write, so versions of the same
    ``(group, id)`` land in enqueue order. Failed jobs are logged and dropped;
    the next change or manual capture is the retry.
    """

    def __init__(
        self,
        registry: ConfigRegistry,
        store: ArchiveStore,
        cache: MetadataCache,
        *,
        queue_size: int = 0,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize the worker.

        Args:
            registry: Registry resolving effective retention per target.
            store: Archive store receiving versions.
            cache: Metadata cache receiving published metadata.
            queue_size: Maximum pending jobs; zero means unbounded.
            clock: Optional time source for retention decisions.
        """
        self._registry = registry
        self._store = store
        self._cache = cache
        self._clock = clock
        self._queue: queue.Queue[CaptureJob | None] = queue.Queue(maxsize=queue_size)
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        """Whether the consumer thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def submit(self, job: CaptureJob) -> None:
        """Enqueue one job; blocks while a bounded queue is full."""
        self._queue.put(job)

    def submit_many(self, jobs: Iterable[CaptureJob]) -> int:
        """Enqueue every job in ``jobs``.

        Args:
            jobs: Jobs to enqueue, in order.

        Returns:
            int: Number of jobs enqueued.
        """
        count = 0
        for job in jobs:
            self.submit(job)
            count += 1
        return count

    def start(self) -> None:
        """Start the consumer thread."""
        if self.running:
            raise RuntimeError("CaptureWorker is already running.")
        self._thread = threading.Thread(target=self._run, name="confhistory-capture", daemon=True)
        self._thread.start()

    def wait_idle(self) -> None:
        """Block until every queued job has been processed."""
        self._queue.join()

    def stop(self, timeout: float | None = None) -> bool:
        """Let queued jobs finish, then stop the consumer thread.

        Returns:
            bool: ``True`` if the thread exited within ``timeout``.
        """
        if self._thread is None:
            return True
        self._queue.put(None)
        self._thread.join(timeout)
        stopped = not self._thread.is_alive()
        if stopped:
            self._thread = None
        else:
            LOGGER.warning("Capture worker did not drain within %s seconds", timeout)
        return stopped

    def process(self, job: CaptureJob) -> CaptureJob:
        """Run one job through its state machine and return it.

        A write failure ends in ``WRITE_FAILED`` and a metadata refresh failure
        in ``METADATA_FAILED``; the version written by the latter stays on disk
        and the cache is left untouched.
        """
        version = job.version
        job.advance(JobState.WRITING)
        try:
            self._store.write_version(
                version.group, version.item_id, version.content, version.captured_at
            )
        except HistoryError as exc:
            job.error = str(exc)
            job.advance(JobState.WRITE_FAILED)
            LOGGER.error(
                "Capture of %s/%s failed: %s", version.group, version.item_id, describe(exc)
            )
            return job
        job.advance(JobState.VERIFIED)

        job.advance(JobState.EVICTING)
        policy = self._registry.effective_retention(job.target)
        now = self._clock() if self._clock is not None else None
        job.evicted = self._store.apply_retention(version.group, version.item_id, policy, now=now)

        try:
            metadata = self._store.refresh_metadata(
                version.group,
                version.item_id,
                display_name=version.display_name,
                backup_type=job.target.strategy.value,
            )
        except HistoryError as exc:
            job.error = str(exc)
            job.advance(JobState.METADATA_FAILED)
            LOGGER.error(
                "Failed to update metadata for %s/%s: %s",
                version.group,
                version.item_id,
                describe(exc),
            )
            return job
        self._cache.publish(metadata)
        job.metadata = metadata
        job.advance(JobState.METADATA_PUBLISHED)
        return job

    def _run(self) -> None:
        while True:
            job = self._queue.get()
            try:
                if job is None:
                    return
                self.process(job)
            except Exception:  # pragma: no cover - keep the consumer alive
                LOGGER.exception("Unexpected error while processing capture job")
            finally:
                self._queue.task_done()


__all__ = ["CaptureWorker"]
