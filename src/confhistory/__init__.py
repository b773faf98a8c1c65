"""Versioned history and restore for automation platform configuration files."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("confhistory")
except PackageNotFoundError:  # source checkout without an installed distribution
    __version__ = "0.0.0"

__all__ = ["__version__"]
