"""Connectors for Redirect Sync."""

from redirect_sync.connectors.csv_source import read_records, write_paths
from redirect_sync.connectors.rewriter_client import RewriterClient

__all__ = ["RewriterClient", "read_records", "write_paths"]
