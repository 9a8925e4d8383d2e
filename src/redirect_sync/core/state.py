"""
Checkpoint Store - Resume and recovery functionality.

Persists how many batches of each input have been committed, keyed by
operation kind and input fingerprint:

    {
      "imports": {"<fingerprint>": {"counter": 3}},
      "deletes": {"<fingerprint>": {"counter": 1}}
    }

A missing entry means the input was never started or has fully completed.
Every write replaces the document atomically, so a crash can leave the old
document or the new one but never a partial one. There is no locking: two
processes working on the same fingerprint at once is unsupported.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from redirect_sync.models import OperationKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Checkpoint:
    """Committed batch count for one input."""

    kind: OperationKind
    fingerprint: str
    counter: int


class CheckpointStore:
    """
    JSON-file checkpoint persistence.

    The document is re-read on every call, so the store never holds stale
    state between batches.

    Example:
        store = CheckpointStore(Path(".redirects_checkpoint.json"))

        checkpoint = store.get(OperationKind.IMPORT, fingerprint)
        start = checkpoint.counter if checkpoint else 0

        store.save(OperationKind.IMPORT, fingerprint, start + 1)
        store.clear(OperationKind.IMPORT, fingerprint)
    """

    def __init__(self, path: Path | str) -> None:
        """
        Initialize checkpoint store.

        Args:
            path: Location of the checkpoint document
        """
        self.path = Path(path)

    def load(self) -> dict[str, Any]:
        """Load the whole document; missing or unreadable files count as empty."""
        if not self.path.exists():
            return {}

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not load checkpoint file %s: %s", self.path, e)
            return {}

        if not isinstance(data, dict):
            logger.warning("Ignoring malformed checkpoint file %s", self.path)
            return {}
        return data

    def get(self, kind: OperationKind, fingerprint: str) -> Checkpoint | None:
        """Return the checkpoint for ``fingerprint`` or None if absent."""
        entry = self.load().get(kind.value, {}).get(fingerprint)
        if not isinstance(entry, dict):
            return None

        counter = entry.get("counter")
        if not isinstance(counter, int) or counter < 0:
            logger.warning(
                "Ignoring invalid %s checkpoint for %s: %r", kind.value, fingerprint, entry
            )
            return None

        return Checkpoint(kind=kind, fingerprint=fingerprint, counter=counter)

    def save(self, kind: OperationKind, fingerprint: str, counter: int) -> None:
        """
        Durably record ``counter`` committed batches for ``fingerprint``.

        Returns only after the new document has been flushed and renamed
        into place.
        """
        if counter < 0:
            raise ValueError(f"counter must be >= 0, got {counter}")

        document = self.load()
        document.setdefault(kind.value, {})[fingerprint] = {"counter": counter}
        self._write(document)
        logger.debug("Checkpoint %s/%s -> %d", kind.value, fingerprint[:8], counter)

    def clear(self, kind: OperationKind, fingerprint: str) -> None:
        """Remove the checkpoint for a fully completed input."""
        document = self.load()
        namespace = document.get(kind.value)
        if not namespace or fingerprint not in namespace:
            return

        del namespace[fingerprint]
        if not namespace:
            del document[kind.value]
        self._write(document)
        logger.debug("Checkpoint %s/%s cleared", kind.value, fingerprint[:8])

    def entries(self) -> list[Checkpoint]:
        """All pending checkpoints, imports first."""
        document = self.load()
        result = []
        for kind in OperationKind:
            for fingerprint in document.get(kind.value, {}):
                checkpoint = self.get(kind, fingerprint)
                if checkpoint is not None:
                    result.append(checkpoint)
        return result

    def clear_all(self) -> None:
        """Delete the checkpoint document."""
        if self.path.exists():
            self.path.unlink()

    def _write(self, document: dict[str, Any]) -> None:
        """Write to a temp file in the same directory, fsync, then rename over."""
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, sort_keys=True)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
