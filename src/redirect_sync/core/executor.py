"""
Batch Executor - Sequential, checkpointed batch submission.

Submits planned batches one at a time and records progress after each
confirmed success. The checkpoint never counts a batch whose submission is
still in flight, so after any crash, failure or interrupt the next run
resumes at the first batch not known to be committed. That batch may
already have reached the service; submit functions must tolerate being
called twice for the same batch.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Sequence

from redirect_sync.core.chunker import Batch
from redirect_sync.core.interrupt import CancellationToken
from redirect_sync.core.state import CheckpointStore
from redirect_sync.errors import SyncInterrupted
from redirect_sync.models import OperationKind

logger = logging.getLogger(__name__)

# Sends one batch's records to the service
SubmitFn = Callable[[Sequence[Any]], Awaitable[Any]]

# Progress sink: (kind value, committed batches, total batches)
ProgressCallback = Callable[[str, int, int], None]


def _context(kind: OperationKind, fingerprint: str, committed: int) -> dict[str, Any]:
    """Structured fields attached to executor log records."""
    return {"operation": kind.value, "fingerprint": fingerprint, "checkpoint": committed}


def _discard_outcome(task: asyncio.Future[Any]) -> None:
    """Retrieve an abandoned submission's result so asyncio does not warn about it."""
    if not task.cancelled():
        task.exception()


class BatchExecutor:
    """
    Runs a batch plan against a submit function.

    Example:
        executor = BatchExecutor(store, on_progress=display.update)
        applied = await executor.run(
            OperationKind.IMPORT, fingerprint, batches,
            start_index=checkpoint.counter, submit=client.import_redirects,
            token=token,
        )
    """

    def __init__(
        self,
        store: CheckpointStore,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.store = store
        self.on_progress = on_progress

    async def run(
        self,
        kind: OperationKind,
        fingerprint: str,
        batches: Sequence[Batch[Any]],
        start_index: int,
        submit: SubmitFn,
        token: CancellationToken | None = None,
    ) -> int:
        """
        Submit ``batches[start_index:]`` in order.

        Args:
            kind: Operation being performed (checkpoint namespace)
            fingerprint: Resume key of the input
            batches: Full plan, including already committed batches
            start_index: Number of batches committed by earlier runs
            submit: Coroutine function sending one batch's records
            token: Cancellation token armed by the caller

        Returns:
            Number of batches submitted by this call

        Raises:
            SyncInterrupted: the token fired; checkpoint holds the committed count
            Exception: whatever ``submit`` raised; checkpoint left at the failed index
        """
        total = len(batches)
        token = token or CancellationToken()

        if start_index > total or (start_index == total and total > 0):
            # A checkpoint can only point past the plan if the batch size
            # changed since it was written
            logger.warning(
                "%s checkpoint for %s is at batch %d but the plan has %d; "
                "treating the input as already applied",
                kind.value, fingerprint[:8], start_index, total,
            )
            self.store.clear(kind, fingerprint)
            return 0

        if start_index:
            logger.info(
                "Resuming %s at batch %d of %d", kind.value, start_index + 1, total
            )
        self._report(kind, start_index, total)

        committed = start_index
        for index in range(start_index, total):
            batch = batches[index]

            if token.cancelled:
                self.store.save(kind, fingerprint, committed)
                raise SyncInterrupted(kind.value, fingerprint, committed)

            try:
                completed = await self._submit(submit, batch, token)
            except Exception:
                self.store.save(kind, fingerprint, committed)
                logger.debug(
                    "Batch %d/%d failed; checkpoint stays at %d",
                    index + 1, total, committed,
                    extra=_context(kind, fingerprint, committed),
                )
                raise

            if not completed:
                self.store.save(kind, fingerprint, committed)
                raise SyncInterrupted(kind.value, fingerprint, committed)

            committed = index + 1
            self.store.save(kind, fingerprint, committed)
            self._report(kind, committed, total)
            logger.debug(
                "Batch %d/%d committed (records %d-%d)",
                committed, total, batch.start_offset, batch.end_offset,
                extra=_context(kind, fingerprint, committed),
            )

        self.store.clear(kind, fingerprint)
        return total - start_index

    async def _submit(
        self,
        submit: SubmitFn,
        batch: Batch[Any],
        token: CancellationToken,
    ) -> bool:
        """
        Await one submission unless the token fires first.

        Returns True when the submission completed successfully and False
        when it was abandoned because of an interrupt. The abandoned
        submission is left running, not awaited.
        """
        submission = asyncio.ensure_future(submit(batch.records))
        interrupted = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait(
                {submission, interrupted},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            interrupted.cancel()

        if submission in done:
            submission.result()
            return True

        submission.add_done_callback(_discard_outcome)
        return False

    def _report(self, kind: OperationKind, committed: int, total: int) -> None:
        if self.on_progress:
            self.on_progress(kind.value, committed, total)
