"""
Reconciliation - delete redirects that an import no longer contains.

After a full import, every redirect that existed before the import but is
absent from the imported file is stale. Stale paths are written to a delete
file and removed through an ordinary delete run, so the cleanup gets its own
fingerprint and checkpoint and can be resumed by hand if it fails:

    redirect-sync delete .redirects_to_delete_1760000000000.csv
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Awaitable, Callable, Iterable

from redirect_sync.connectors.csv_source import write_paths
from redirect_sync.errors import ReconciliationError, SyncInterrupted

logger = logging.getLogger(__name__)

# Runs a delete over a file and returns the deleted keys
DeleteRun = Callable[[Path], Awaitable[list[str]]]


def stale_keys(previous: Iterable[str], new: Iterable[str]) -> list[str]:
    """Keys in ``previous`` but not in ``new``, in first-seen order, without duplicates."""
    current = set(new)
    seen: set[str] = set()
    stale = []
    for key in previous:
        if key in current or key in seen:
            continue
        seen.add(key)
        stale.append(key)
    return stale


class ReconciliationDiffer:
    """
    Computes stale redirects and drives their deletion.

    Example:
        differ = ReconciliationDiffer(engine.delete_redirects, Path("."))
        deleted = await differ.reconcile(existing_keys, imported_keys)
    """

    def __init__(
        self,
        delete_run: DeleteRun,
        workdir: Path | str = ".",
        delimiter: str = ";",
    ) -> None:
        self.delete_run = delete_run
        self.workdir = Path(workdir)
        self.delimiter = delimiter

    def pending_file_path(self) -> Path:
        """Fresh path for a transient delete file."""
        return self.workdir / f".redirects_to_delete_{int(time.time() * 1000)}.csv"

    async def reconcile(
        self,
        previous: Iterable[str],
        new: Iterable[str],
    ) -> list[str]:
        """
        Delete every key of ``previous`` that is missing from ``new``.

        Returns:
            The stale keys that were deleted (empty if nothing was stale)

        Raises:
            ReconciliationError: writing the delete file or the delete run
                failed; ``pending_file`` names the file to resume from
            SyncInterrupted: the delete run was interrupted; the delete
                file is kept and set as ``pending_file``
        """
        stale = stale_keys(previous, new)
        if not stale:
            logger.info("No stale redirects to delete")
            return []

        pending = self.pending_file_path()
        try:
            write_paths(pending, stale, delimiter=self.delimiter)
        except OSError as e:
            raise ReconciliationError(
                None, f"Could not write pending deletions to {pending}: {e}"
            ) from e

        logger.info("Deleting %d stale redirects...", len(stale))
        logger.info(
            "In case this step fails, run 'redirect-sync delete %s' "
            "to finish deleting old redirects.",
            pending.resolve(),
        )

        try:
            deleted = await self.delete_run(pending)
        except SyncInterrupted as e:
            # Re-running the import would not resume this delete run
            e.pending_file = pending
            raise
        except Exception as e:
            raise ReconciliationError(
                pending, f"Deleting stale redirects failed: {e}"
            ) from e

        pending.unlink(missing_ok=True)
        return deleted
