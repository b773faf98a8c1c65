"""Shared fixtures for the confhistory test suite."""

from __future__ import annotations

from pathlib import Path

import pytest

from confhistory.archive import ArchiveStore, RetentionPolicy
from confhistory.registry import BackupStrategy, ConfigRegistry, Target

AUTOMATIONS_YAML = """\
- id: a1
  alias: Porch lights at sunset
  trigger:
    platform: sun
    event: sunset
- id: a2
  alias: Morning coffee
  trigger:
    platform: time
    at: "07:00:00"
- id: a3
  alias: Night mode
  trigger:
    platform: time
    at: "23:00:00"
"""

AUTOMATIONS = Target(
    name="Automations",
    group="automations.yaml",
    strategy=BackupStrategy.MULTIPLE,
    id_field="id",
    label_field="alias",
)
MAIN_CONFIG = Target(name="Main configuration", group="configuration.yaml", strategy=BackupStrategy.SINGLE)
PACKAGES = Target(name="Packages", group="packages", strategy=BackupStrategy.DIRECTORY)


@pytest.fixture
def live_root(tmp_path: Path) -> Path:
    """Return a live configuration root seeded with one file per strategy."""
    root = tmp_path / "config"
    root.mkdir()
    (root / "automations.yaml").write_text(AUTOMATIONS_YAML, encoding="utf-8")
    (root / "configuration.yaml").write_text(
        "homeassistant:\n  name: Home\n  unit_system: metric\n", encoding="utf-8"
    )
    packages = root / "packages"
    packages.mkdir()
    (packages / "lights.yaml").write_text("light:\n  - platform: group\n", encoding="utf-8")
    (packages / "climate.yaml").write_text("climate:\n  - platform: generic\n", encoding="utf-8")
    return root


@pytest.fixture
def archive_root(tmp_path: Path) -> Path:
    return tmp_path / "backups"


@pytest.fixture
def registry(live_root: Path, archive_root: Path) -> ConfigRegistry:
    """Return a registry tracking one target of each strategy."""
    return ConfigRegistry(
        live_root=live_root,
        archive_root=archive_root,
        targets=(AUTOMATIONS, MAIN_CONFIG, PACKAGES),
        default_retention=RetentionPolicy(),
    )


@pytest.fixture
def store(archive_root: Path) -> ArchiveStore:
    store = ArchiveStore(archive_root)
    store.initialize()
    return store
