"""Error taxonomy shared by the archive, capture, and restore layers."""

from __future__ import annotations


class HistoryError(Exception):
    """Base exception for confhistory operations.

    Attributes:
        kind: Machine-readable error category used by outer layers.
    """

    kind = "history_error"


class NotFoundError(HistoryError):
    """Raised when a target, group, id, or version does not exist."""

    kind = "not_found"


class InvalidInputError(HistoryError):
    """Raised when an externally supplied path component fails validation."""

    kind = "invalid_input"


class ArchiveIOError(HistoryError):
    """Raised when a read, write, stat, or delete operation fails."""

    kind = "io_failure"


class ParseError(HistoryError):
    """Raised when a structured document is malformed or has an unexpected shape."""

    kind = "parse_failure"


class VerificationError(HistoryError):
    """Raised when a freshly written version cannot be read back."""

    kind = "verification_failure"


class ConfigError(HistoryError):
    """Raised when settings cannot be read, parsed, or validated."""

    kind = "config_error"


def describe(exc: BaseException) -> str:
    """Return ``exc``'s message followed by its chained cause, for log output.

    Messages of :class:`HistoryError` stay at the group/id level; the OS or
    parser detail lives only in the chained cause, which this helper appends.

    Args:
        exc: Exception to describe.

    Returns:
        str: ``"message (cause)"``, or just the message when there is no cause.
    """
    cause = exc.__cause__
    if cause is None:
        return str(exc)
    return f"{exc} ({cause})"


__all__ = [
    "describe",
    "ConfigError",
    "HistoryError",
    "NotFoundError",
    "InvalidInputError",
    "ArchiveIOError",
    "ParseError",
    "VerificationError",
]
