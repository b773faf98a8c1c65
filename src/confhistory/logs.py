"""Logging configuration driven by :class:`LoggingSettings`."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from confhistory.config import LoggingSettings

_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: LoggingSettings, *, level_override: Optional[str] = None) -> logging.Logger:
    """Attach console (and optionally rotating file) handlers to the package logger.

    Calling it again replaces previously installed handlers.
    """
    logger = logging.getLogger("confhistory")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    level = (level_override or settings.level).upper()
    logger.setLevel(level)
    logger.addHandler(RichHandler(console=Console(stderr=True), show_path=False))

    if settings.file:
        path = Path(settings.file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max(1, settings.max_size_mb) * 1024 * 1024,
            backupCount=max(0, settings.backup_count),
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)
    return logger


__all__ = ["configure_logging"]
