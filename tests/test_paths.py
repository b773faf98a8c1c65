"""Tests for archive path component validation."""

import pytest

from confhistory.archive.paths import sanitize_path, validate_component
from confhistory.errors import InvalidInputError


@pytest.mark.parametrize(
    "value",
    ["automations.yaml", "packages/lights.yaml", "20240101T120000.yaml", "a2"],
)
def test_validate_component_accepts_relative_names(value: str) -> None:
    assert validate_component(value, "group") == value


@pytest.mark.parametrize(
    "value",
    [
        "",
        "../secrets",
        "configs/../secrets",
        "/etc/passwd",
        "C:\\Windows\\system.ini",
        "\\\\server\\share",
    ],
)
def test_validate_component_rejects_unsafe_values(value: str) -> None:
    with pytest.raises(InvalidInputError, match="Invalid id parameter"):
        validate_component(value, "id")


def test_sanitize_path_rejects_leading_traversal() -> None:
    with pytest.raises(InvalidInputError, match="directory traversal"):
        sanitize_path("../secrets", "group")


def test_sanitize_path_allows_normalized_mid_path_traversal() -> None:
    """Known gap: the store-level check only inspects the normalized path."""
    assert sanitize_path("configs/../secrets", "group") == "configs/../secrets"


def test_sanitize_path_allows_bare_absolute_path() -> None:
    """Known gap: absolute paths pass the store-level check."""
    assert sanitize_path("/etc/passwd", "filename") == "/etc/passwd"
