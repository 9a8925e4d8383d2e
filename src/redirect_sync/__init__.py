"""Redirect Sync - resumable bulk redirect import/delete tool."""

__version__ = "1.0.0"
__author__ = "Redirect Sync Contributors"

from redirect_sync.config import Settings

__all__ = ["Settings", "__version__"]
