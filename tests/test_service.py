"""End-to-end tests for the history service facade."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterator

import pytest

from confhistory.config import WatchSettings
from confhistory.errors import InvalidInputError, NotFoundError
from confhistory.registry import ConfigRegistry
from confhistory.service import HistoryService


@pytest.fixture
def service(registry: ConfigRegistry) -> Iterator[HistoryService]:
    service = HistoryService(registry, watch=WatchSettings(enabled=False, drain_timeout_seconds=5))
    service.start(backfill=True)
    service.wait_idle()
    try:
        yield service
    finally:
        service.stop()


def test_backfill_populates_listing(service: HistoryService) -> None:
    entries = service.list_configs()

    assert [entry.display_name for entry in entries] == [
        "Main configuration",
        "Morning coffee",
        "Night mode",
        "Porch lights at sunset",
        "climate.yaml",
        "lights.yaml",
    ]
    assert {entry.backup_type for entry in entries} == {"single", "multiple", "directory"}


def test_cache_is_rebuilt_from_archive_on_start(service: HistoryService, registry: ConfigRegistry) -> None:
    restarted = HistoryService(registry, watch=WatchSettings(enabled=False))
    restarted.start(backfill=False)
    try:
        assert [entry.key for entry in restarted.list_configs()] == [
            entry.key for entry in service.list_configs()
        ]
    finally:
        restarted.stop()


def test_compare_versions_returns_unified_diff(
    service: HistoryService, registry: ConfigRegistry, live_root: Path
) -> None:
    store_dir = registry.archive_root / "configuration.yaml" / "configuration.yaml"
    (store_dir / "20200101T000000.yaml").write_bytes(b"homeassistant:\n  name: Cabin\n")
    latest = service.list_versions("configuration.yaml", "configuration.yaml")[0].filename

    diff = service.compare_versions("configuration.yaml", "configuration.yaml", "20200101T000000.yaml", latest)

    assert diff.startswith("--- 20200101T000000.yaml\n+++ " + latest)
    assert "-  name: Cabin" in diff
    assert "+  name: Home" in diff
    assert service.compare_versions("configuration.yaml", "configuration.yaml", latest, latest) == ""


def test_delete_last_version_evicts_cache_entry(service: HistoryService) -> None:
    versions = service.list_versions("automations.yaml", "a3")
    assert len(versions) == 1

    assert service.delete_version("automations.yaml", "a3", versions[0].filename) is None

    assert service.cache.get("automations.yaml", "a3") is None
    with pytest.raises(NotFoundError):
        service.list_versions("automations.yaml", "a3")


def test_delete_all_evicts_cache_entry(service: HistoryService) -> None:
    service.delete_all("packages", "lights.yaml")

    assert ("packages", "lights.yaml") not in service.cache


def test_restore_round_trip(service: HistoryService, live_root: Path) -> None:
    live = live_root / "configuration.yaml"
    original = live.read_bytes()
    filename = service.list_versions("configuration.yaml", "configuration.yaml")[0].filename
    live.write_text("homeassistant:\n  name: Changed\n", encoding="utf-8")

    path = service.restore("configuration.yaml", "configuration.yaml", filename)

    assert path == live
    assert live.read_bytes() == original


def test_restore_directory_round_trip(service: HistoryService, live_root: Path) -> None:
    live = live_root / "packages" / "lights.yaml"
    original = live.read_bytes()
    filename = service.list_versions("packages", "lights.yaml")[0].filename
    live.write_text("light: []\n", encoding="utf-8")

    path = service.restore("packages", "lights.yaml", filename)

    assert path == live
    assert live.read_bytes() == original
    assert (live_root / "packages" / "climate.yaml").is_file()


def test_metadata_sidecar_cannot_be_read_or_restored(
    service: HistoryService, registry: ConfigRegistry, live_root: Path
) -> None:
    live = live_root / "configuration.yaml"
    original = live.read_bytes()

    with pytest.raises(NotFoundError):
        service.read_version("configuration.yaml", "configuration.yaml", "metadata.json")
    with pytest.raises(NotFoundError):
        service.restore("configuration.yaml", "configuration.yaml", "metadata.json")
    with pytest.raises(NotFoundError):
        service.delete_version("configuration.yaml", "configuration.yaml", "metadata.json")

    assert live.read_bytes() == original
    sidecar = registry.archive_root / "configuration.yaml" / "configuration.yaml" / "metadata.json"
    assert sidecar.is_file()
    assert service.cache.get("configuration.yaml", "configuration.yaml") is not None


@pytest.mark.parametrize(
    ("group", "item_id", "filename"),
    [
        ("../etc", "a1", "20240101T000000.yaml"),
        ("automations.yaml", "/etc/passwd", "20240101T000000.yaml"),
        ("automations.yaml", "a1", "configs/../secrets"),
        ("automations.yaml", "a1", "C:\\boot.ini"),
    ],
)
def test_service_rejects_unsafe_components(
    service: HistoryService, group: str, item_id: str, filename: str
) -> None:
    with pytest.raises(InvalidInputError):
        service.read_version(group, item_id, filename)
    with pytest.raises(InvalidInputError):
        service.restore(group, item_id, filename)


class _RecordingObserver:
    """Observer stand-in that records scheduled directories without touching the OS."""

    def __init__(self) -> None:
        self.scheduled: list[str] = []

    def schedule(self, handler: Any, path: str, recursive: bool = False) -> None:
        self.scheduled.append(path)

    def start(self) -> None:
        return None

    def stop(self) -> None:
        return None

    def join(self, timeout: float | None = None) -> None:
        return None


def test_watch_without_backfill_registers_every_target(
    registry: ConfigRegistry, live_root: Path
) -> None:
    observers: list[_RecordingObserver] = []

    def factory() -> _RecordingObserver:
        observer = _RecordingObserver()
        observers.append(observer)
        return observer

    service = HistoryService(
        registry,
        watch=WatchSettings(enabled=True, drain_timeout_seconds=5),
        observer_factory=factory,  # type: ignore[arg-type]
    )
    service.start(backfill=False)
    try:
        assert service.detector.watched_directories == {live_root, live_root / "packages"}
        detector = service.detector
        assert detector.lookup(live_root / "configuration.yaml") == registry.get("configuration.yaml")
        assert detector.lookup(live_root / "packages" / "lights.yaml") == registry.get("packages")
        assert len(observers) == 1
        assert sorted(observers[0].scheduled) == sorted([str(live_root), str(live_root / "packages")])
        assert service.list_configs() == []
    finally:
        service.stop()
