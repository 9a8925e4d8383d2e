"""
Error taxonomy for Redirect Sync.

Failures are split by who may recover from them:
- ReadError / ValidationError: bad input, fatal before any submission
- RemoteTransientError: network or infrastructure trouble, retried
- RemoteRejectionError: the service refused the payload, never retried
- SyncInterrupted: not an error, a checkpointed stop requested by the operator
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class RedirectSyncError(Exception):
    """Base exception for Redirect Sync."""


class ReadError(RedirectSyncError):
    """Raised when an input file cannot be read."""

    def __init__(self, path: Path | str, reason: str) -> None:
        super().__init__(f"Could not read {path}: {reason}")
        self.path = Path(path)
        self.reason = reason


class ValidationError(RedirectSyncError):
    """Raised when input records do not match the expected schema."""

    def __init__(self, path: Path | str, problems: list[str]) -> None:
        summary = "; ".join(problems[:5])
        if len(problems) > 5:
            summary += f"; ... and {len(problems) - 5} more"
        super().__init__(f"Invalid input in {path}: {summary}")
        self.path = Path(path)
        self.problems = problems


class RemoteError(RedirectSyncError):
    """Base exception for failures reported by the remote service."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status


class RemoteTransientError(RemoteError):
    """Network or infrastructure failure; the same request may succeed later."""


class RemoteRejectionError(RemoteError):
    """Business-rule rejection of a specific payload."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message, status)
        self.errors = errors or []


class ReconciliationError(RedirectSyncError):
    """Raised when stale redirects could not be deleted after an import."""

    def __init__(self, pending_file: Path | None, reason: str) -> None:
        super().__init__(reason)
        self.pending_file = pending_file


class SyncInterrupted(RedirectSyncError):
    """A run stopped on an external interrupt after saving its checkpoint."""

    def __init__(
        self,
        kind: str,
        fingerprint: str,
        committed: int,
        pending_file: Path | None = None,
    ) -> None:
        super().__init__(
            f"Interrupted {kind} run {fingerprint[:8]} after {committed} batch(es)"
        )
        self.kind = kind
        self.fingerprint = fingerprint
        self.committed = committed
        # Delete file to resume from when the stale-redirect cleanup was interrupted
        self.pending_file = pending_file
