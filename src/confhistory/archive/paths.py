"""Validation of externally supplied group, id, and filename components.

Two validators exist. :func:`validate_component` is the strict check applied to
every component arriving from an outer layer before anything touches the
filesystem. :func:`sanitize_path` is the lighter check the archive store applies
to its own arguments; it only inspects the normalized path, so mid-path
traversal that normalizes away (``configs/../secrets``) and bare absolute
paths (``/etc/passwd``) pass it.
"""

from __future__ import annotations

import ntpath
import posixpath
import re

from confhistory.errors import InvalidInputError

_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:")


def validate_component(value: str, label: str = "path") -> str:
    """Return ``value`` unchanged if it is a safe relative path component.

    Args:
        value: Component supplied by the caller.
        label: Parameter name used in the error message.

    Returns:
        str: The validated component.

    Raises:
        InvalidInputError: If the component is empty, absolute, drive- or
            UNC-prefixed, or contains a parent-directory segment.
    """
    if not value:
        raise InvalidInputError(f"Invalid {label} parameter: empty path")
    if posixpath.isabs(value) or ntpath.isabs(value):
        raise InvalidInputError(f"Invalid {label} parameter: absolute paths not allowed")
    if ":" in value or _DRIVE_PREFIX.match(value) or value.startswith("\\\\"):
        raise InvalidInputError(f"Invalid {label} parameter: absolute paths not allowed")
    if ".." in value:
        raise InvalidInputError(f"Invalid {label} parameter: contains directory traversal")
    cleaned = posixpath.normpath(value)
    if cleaned.startswith("/") or cleaned.startswith("\\"):
        raise InvalidInputError(f"Invalid {label} parameter: absolute paths not allowed")
    return value


def sanitize_path(value: str, label: str = "path") -> str:
    """Reject components whose normalized form still contains ``..``."""
    if not value:
        raise InvalidInputError(f"Invalid {label} parameter: empty path")
    if ".." in posixpath.normpath(value.replace("\\", "/")):
        raise InvalidInputError(f"Invalid {label} parameter: contains directory traversal")
    return value


__all__ = ["validate_component", "sanitize_path"]
