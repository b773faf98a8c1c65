"""Filesystem watch support."""

from .service import ChangeDetector

__all__ = ["ChangeDetector"]
