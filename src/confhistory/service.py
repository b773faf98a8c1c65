"""Facade wiring the archive, cache, capture pipeline, watcher, and restore engine."""

from __future__ import annotations

import difflib
import logging
from pathlib import Path
from typing import Callable, Optional

from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from confhistory.archive import ArchiveMetadata, ArchiveStore, VersionInfo, validate_component
from confhistory.cache import MetadataCache
from confhistory.capture import CapturePipeline, CaptureSummary, CaptureWorker
from confhistory.config import HistoryConfig, WatchSettings
from confhistory.registry import ConfigRegistry
from confhistory.restore import RestoreEngine
from confhistory.watch import ChangeDetector

LOGGER = logging.getLogger(__name__)


class HistoryService:
    """Operations exposed to outer layers (CLI, HTTP).

    Every group, id, and filename argument is validated before any
    filesystem access. Errors surface as :class:`~confhistory.errors.HistoryError`
    subclasses carrying a human-readable message.
    """

    def __init__(
        self,
        registry: ConfigRegistry,
        *,
        watch: Optional[WatchSettings] = None,
        cache: Optional[MetadataCache] = None,
        observer_factory: Callable[[], BaseObserver] = Observer,
    ) -> None:
        self._registry = registry
        self._watch_settings = watch or WatchSettings()
        self._store = ArchiveStore(registry.archive_root)
        self._cache = cache or MetadataCache()
        self._worker = CaptureWorker(
            registry,
            self._store,
            self._cache,
            queue_size=self._watch_settings.queue_size,
        )
        self._pipeline = CapturePipeline(registry, self._worker)
        self._detector = ChangeDetector(self._pipeline, self._worker, observer_factory=observer_factory)
        self._restorer = RestoreEngine(registry, self._store)
        self._watching = False

    @classmethod
    def from_config(cls, config: HistoryConfig, **kwargs) -> "HistoryService":
        """Build a service from loaded settings.

        Args:
            config: Validated settings.
            **kwargs: Extra keyword arguments for the constructor.

        Returns:
            HistoryService: The unstarted service.
        """
        return cls(ConfigRegistry.from_config(config), watch=config.watch, **kwargs)

    @property
    def registry(self) -> ConfigRegistry:
        """Registry of configured targets."""
        return self._registry

    @property
    def cache(self) -> MetadataCache:
        """In-memory metadata cache."""
        return self._cache

    @property
    def detector(self) -> ChangeDetector:
        """Change detector driving watch-mode captures."""
        return self._detector

    # Lifecycle ---------------------------------------------------------

    def start(self, *, backfill: bool = True, watch: Optional[bool] = None) -> None:
        """Load the cache, start the worker, and optionally watch and backfill.

        Every configured target is registered with the change detector before
        it starts, so watching does not depend on a prior capture.

        Args:
            backfill: Capture every target once after startup.
            watch: Override for ``watch.enabled`` from the settings.

        Raises:
            ArchiveIOError: If the archive root cannot be initialized.
        """
        self._store.initialize()
        self._cache.rebuild(self._store.scan_metadata())
        LOGGER.info("Loaded metadata for %d archived configs", len(self._cache))
        self._worker.start()

        watch_enabled = self._watch_settings.enabled if watch is None else watch
        if watch_enabled:
            for target in self._registry:
                self._detector.register(self._registry.live_path(target), target)
            self._pipeline.set_observer(self._detector.register)
            self._detector.start()
            self._watching = True
        if backfill:
            self.capture_all()

    def stop(self) -> None:
        """Stop the watcher first, then drain in-flight capture jobs."""
        if self._watching:
            self._detector.stop()
            self._pipeline.set_observer(None)
            self._watching = False
        self._worker.stop(timeout=self._watch_settings.drain_timeout_seconds)

    def wait_idle(self) -> None:
        """Block until the worker has processed every queued job."""
        self._worker.wait_idle()

    # Operations --------------------------------------------------------

    def list_configs(self) -> list[ArchiveMetadata]:
        """Return cached metadata sorted by display name."""
        return self._cache.list_all()

    def capture_all(self) -> CaptureSummary:
        """Enqueue captures for every target; returns once each was attempted."""
        summary = self._pipeline.capture_all()
        LOGGER.info(
            "Capture requested for %d configs, %d jobs queued", len(summary.attempted), summary.enqueued
        )
        return summary

    def list_versions(self, group: str, item_id: str) -> list[VersionInfo]:
        """Return the versions of one config, newest first.

        Raises:
            InvalidInputError: If ``group`` or ``item_id`` is not a plain name.
            NotFoundError: If nothing is archived for the pair.
        """
        self._validate(group=group, id=item_id)
        return self._store.list_versions(group, item_id)

    def read_version(self, group: str, item_id: str, filename: str) -> bytes:
        """Return the raw bytes of one archived version."""
        self._validate(group=group, id=item_id, filename=filename)
        return self._store.read_version(group, item_id, filename)

    def compare_versions(self, group: str, item_id: str, left: str, right: str) -> str:
        """Return a unified diff from version ``left`` to version ``right``."""
        self._validate(group=group, id=item_id, filename=left)
        self._validate(filename=right)
        before = self._store.read_version(group, item_id, left).decode("utf-8", errors="replace")
        after = self._store.read_version(group, item_id, right).decode("utf-8", errors="replace")
        return "".join(
            difflib.unified_diff(
                before.splitlines(keepends=True),
                after.splitlines(keepends=True),
                fromfile=left,
                tofile=right,
            )
        )

    def delete_version(self, group: str, item_id: str, filename: str) -> Optional[ArchiveMetadata]:
        """Delete one version.

        Returns:
            Optional[ArchiveMetadata]: Updated metadata, or ``None`` when no
            versions remain (the cache entry is evicted).
        """
        self._validate(group=group, id=item_id, filename=filename)
        metadata = self._store.delete_version(group, item_id, filename)
        if metadata is None:
            self._cache.evict(group, item_id)
        else:
            self._cache.publish(metadata)
        return metadata

    def delete_all(self, group: str, item_id: str) -> None:
        """Delete every version of one config and evict its cache entry."""
        self._validate(group=group, id=item_id)
        self._store.delete_all(group, item_id)
        self._cache.evict(group, item_id)

    def restore(self, group: str, item_id: str, filename: str) -> Path:
        """Restore one version onto the live target identified by ``group``."""
        self._validate(group=group, id=item_id, filename=filename)
        return self._restorer.restore(group, item_id, filename)

    @staticmethod
    def _validate(**components: str) -> None:
        for label, value in components.items():
            validate_component(value, label)


__all__ = ["HistoryService"]
