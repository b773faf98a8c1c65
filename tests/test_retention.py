"""Tests for retention planning and eviction."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from confhistory.archive.naming import parse_version_filename, version_filename
from confhistory.archive.retention import RetentionPolicy, evict, plan_evictions

NOW = datetime(2024, 1, 10, 12, 0, 0, tzinfo=timezone.utc)


def _seed(directory: Path, names: list[str]) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    for name in names:
        (directory / name).write_text("value: 1\n", encoding="utf-8")


def test_version_filename_round_trips_utc() -> None:
    stamp = datetime(2024, 3, 5, 7, 8, 9, tzinfo=timezone.utc)

    name = version_filename(stamp)

    assert name == "20240305T070809.yaml"
    assert parse_version_filename(name) == stamp
    assert parse_version_filename("notes.yaml") is None


def test_count_rule_keeps_newest() -> None:
    names = [f"2024010{day}T000000.yaml" for day in range(1, 6)]

    evictions = plan_evictions(names, RetentionPolicy(max_count=3), now=NOW)

    assert [eviction.filename for eviction in evictions] == [
        "20240102T000000.yaml",
        "20240101T000000.yaml",
    ]
    assert all(eviction.reason == "exceeded max backups limit" for eviction in evictions)


def test_age_rule_removes_old_versions() -> None:
    names = ["20240101T000000.yaml", "20240105T000000.yaml", "20240109T000000.yaml"]

    evictions = plan_evictions(names, RetentionPolicy(max_age_days=7), now=NOW)

    assert [eviction.filename for eviction in evictions] == ["20240101T000000.yaml"]
    assert evictions[0].reason == "older than max backup age"


def test_count_and_age_rules_are_additive() -> None:
    names = ["20231201T000000.yaml", "20240108T000000.yaml", "20240109T000000.yaml", "20240110T000000.yaml"]

    evictions = plan_evictions(names, RetentionPolicy(max_count=3, max_age_days=30), now=NOW)

    assert [eviction.filename for eviction in evictions] == ["20231201T000000.yaml"]

    evictions = plan_evictions(names, RetentionPolicy(max_count=10, max_age_days=1), now=NOW)
    assert {eviction.filename for eviction in evictions} == {
        "20231201T000000.yaml",
        "20240108T000000.yaml",
        "20240109T000000.yaml",
    }


def test_unparseable_names_are_exempt_from_age_rule() -> None:
    names = ["manual-export.yaml", "20200101T000000.yaml"]

    evictions = plan_evictions(names, RetentionPolicy(max_age_days=1), now=NOW)

    assert [eviction.filename for eviction in evictions] == ["20200101T000000.yaml"]


def test_evict_keeps_two_largest_filenames(tmp_path: Path) -> None:
    directory = tmp_path / "automations.yaml" / "a1"
    names = [f"2024010{day}T000000.yaml" for day in range(1, 6)]
    _seed(directory, names)
    (directory / "metadata.json").write_text("{}", encoding="utf-8")

    removed = evict(directory, RetentionPolicy(max_count=2), now=NOW)

    assert sorted(removed) == names[:3]
    remaining = sorted(path.name for path in directory.iterdir())
    assert remaining == ["20240104T000000.yaml", "20240105T000000.yaml", "metadata.json"]


def test_evict_without_limits_is_a_no_op(tmp_path: Path) -> None:
    directory = tmp_path / "configuration.yaml" / "configuration.yaml"
    _seed(directory, ["20200101T000000.yaml"])

    assert evict(directory, RetentionPolicy(), now=NOW) == []
    assert (directory / "20200101T000000.yaml").exists()


def test_policy_fallback_fills_unset_axes() -> None:
    policy = RetentionPolicy(max_count=4).with_fallback(RetentionPolicy(max_count=9, max_age_days=14))

    assert policy == RetentionPolicy(max_count=4, max_age_days=14)
    assert RetentionPolicy().unlimited
