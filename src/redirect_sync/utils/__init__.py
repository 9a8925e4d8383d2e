"""Utility modules for Redirect Sync."""

from redirect_sync.utils.logger import configure_from_settings, setup_logging
from redirect_sync.utils.display import ProgressDisplay

__all__ = ["setup_logging", "configure_from_settings", "ProgressDisplay"]
