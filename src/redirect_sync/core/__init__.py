"""Core sync engine components for Redirect Sync."""

from redirect_sync.core.engine import SyncEngine, SyncStats
from redirect_sync.core.chunker import Batch, BatchPlanner
from redirect_sync.core.executor import BatchExecutor
from redirect_sync.core.fingerprint import Fingerprinter, fingerprint
from redirect_sync.core.interrupt import CancellationToken, arm_interrupts
from redirect_sync.core.reconcile import ReconciliationDiffer, stale_keys
from redirect_sync.core.state import Checkpoint, CheckpointStore

__all__ = [
    "SyncEngine",
    "SyncStats",
    "Batch",
    "BatchPlanner",
    "BatchExecutor",
    "Fingerprinter",
    "fingerprint",
    "CancellationToken",
    "arm_interrupts",
    "ReconciliationDiffer",
    "stale_keys",
    "Checkpoint",
    "CheckpointStore",
]
