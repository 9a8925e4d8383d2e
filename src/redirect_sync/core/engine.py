"""
Sync Engine - Main orchestration for redirect runs.

Coordinates all components to perform imports and deletes:
- Fingerprinter for the resume key of an input file
- CheckpointStore for resume/recovery
- BatchPlanner for deterministic batching
- BatchExecutor for sequential, checkpointed submission
- ReconciliationDiffer for removing redirects an import no longer has

Each run is retried on transient remote failures. A retry re-reads the
input and resumes from whatever checkpoint the failed attempt left.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Sequence, TypeVar

from redirect_sync.config import Settings
from redirect_sync.connectors.csv_source import decode, parse_records, read_bytes
from redirect_sync.connectors.rewriter_client import RewriterClient
from redirect_sync.core.chunker import BatchPlanner
from redirect_sync.core.executor import BatchExecutor, ProgressCallback, SubmitFn
from redirect_sync.core.fingerprint import Fingerprinter
from redirect_sync.core.interrupt import DEFAULT_SIGNALS, CancellationToken, arm_interrupts
from redirect_sync.core.reconcile import ReconciliationDiffer
from redirect_sync.core.state import CheckpointStore
from redirect_sync.errors import RemoteTransientError, SyncInterrupted
from redirect_sync.models import RECORD_MODELS, OperationKind

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[Any]]


@dataclass
class SyncStats:
    """Statistics for one run."""

    operation: str  # imports or deletes
    source: str = ""
    fingerprint: str = ""
    attempts: int = 0
    batches_total: int = 0
    batches_committed: int = 0
    resumed_from: int = 0
    records_total: int = 0
    start_time: float = 0.0
    end_time: float = 0.0
    errors: list[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        """Duration in seconds."""
        if self.end_time and self.start_time:
            return self.end_time - self.start_time
        if self.start_time:
            return time.time() - self.start_time
        return 0.0

    def as_summary(self) -> dict[str, Any]:
        """Values for the CLI summary table."""
        return {
            "operation": self.operation.upper(),
            "duration": self.duration_seconds,
            "attempts": self.attempts,
            "batches_committed": self.batches_committed,
            "batches_total": self.batches_total,
            "resumed_from": self.resumed_from,
            "records_total": self.records_total,
        }


class SyncEngine:
    """
    Main engine coordinating imports and deletes.

    Example:
        async with create_rewriter_client(settings) as client:
            engine = SyncEngine(settings, client)

            # Import, then delete redirects missing from the file
            keys = await engine.import_redirects(Path("redirects.csv"), reset=True)

            # Delete the paths listed in a file
            await engine.delete_redirects(Path("old.csv"))
    """

    def __init__(
        self,
        settings: Settings,
        client: RewriterClient,
        store: CheckpointStore | None = None,
        on_progress: ProgressCallback | None = None,
        sleep: SleepFn = asyncio.sleep,
        signals: Sequence[signal.Signals] = DEFAULT_SIGNALS,
    ) -> None:
        """
        Initialize sync engine.

        Args:
            settings: Application settings
            client: Remote client used to submit batches
            store: Checkpoint store (defaults to settings.sync.checkpoint_file)
            on_progress: Optional progress sink
            sleep: Delay function used between retries
            signals: Signals that interrupt a run
        """
        self.settings = settings
        self.client = client
        self.store = store or CheckpointStore(settings.sync.checkpoint_file)
        self.planner = BatchPlanner.from_limits(settings.limits)
        self.fingerprinter = Fingerprinter(settings.sync.fingerprint_algorithm)
        self.executor = BatchExecutor(self.store, on_progress)
        self.signals = signals
        self._sleep = sleep
        self.history: list[SyncStats] = []

    async def import_redirects(
        self,
        source: Path | str,
        reset: bool = False,
        previous_keys: Sequence[str] | None = None,
    ) -> list[str]:
        """
        Import every redirect in ``source``.

        Args:
            source: CSV file of redirects
            reset: Afterwards, delete redirects that existed before the
                import but are not in ``source``
            previous_keys: Paths known before the import; fetched from the
                service when ``reset`` is set and this is None

        Returns:
            ``from`` path of every imported redirect, in file order
        """
        if reset and previous_keys is None:
            logger.info("Listing existing redirects...")
            previous_keys = await self._with_retry(
                "listing redirects", self.client.list_redirect_keys
            )

        imported = await self.run(OperationKind.IMPORT, source)
        logger.info("Finished importing %d redirects", len(imported))

        if reset:
            differ = ReconciliationDiffer(
                self.delete_redirects,
                workdir=self.settings.sync.workdir,
                delimiter=self.settings.sync.csv_delimiter,
            )
            await differ.reconcile(previous_keys or [], imported)

        return imported

    async def delete_redirects(self, source: Path | str) -> list[str]:
        """Delete every redirect whose ``from`` path is listed in ``source``."""
        deleted = await self.run(OperationKind.DELETE, source)
        logger.info("Finished deleting %d redirects", len(deleted))
        return deleted

    async def run(self, kind: OperationKind, source: Path | str) -> list[str]:
        """
        Apply ``source`` with bounded retries.

        Returns:
            Key of every record in ``source``
        """
        source_path = Path(source)
        stats = SyncStats(operation=kind.value, source=str(source_path))
        stats.start_time = time.time()
        self.history.append(stats)

        try:
            return await self._with_retry(
                f"{kind.value} of {source_path.name}",
                lambda: self._attempt(kind, source_path, stats),
                stats,
            )
        finally:
            stats.end_time = time.time()

    async def _with_retry(
        self,
        label: str,
        attempt_fn: Callable[[], Awaitable[T]],
        stats: SyncStats | None = None,
    ) -> T:
        """
        Call ``attempt_fn`` until it succeeds, a non-retryable error is
        raised, or ``max_retries`` retries have been spent.
        """
        max_retries = self.settings.retry.max_retries
        interval = self.settings.retry.retry_interval_seconds
        attempt = 0

        while True:
            if stats is not None:
                stats.attempts = attempt + 1
            try:
                return await attempt_fn()
            except RemoteTransientError as e:
                if stats is not None:
                    stats.errors.append(str(e))
                logger.error("Error handling %s: %s", label, e)
                if attempt >= max_retries:
                    logger.error("Giving up after %d attempt(s)", attempt + 1)
                    raise
                logger.error("Retrying in %s seconds...", interval)
                logger.info("Press CTRL+C to abort")
                await self._sleep(interval)
                attempt += 1
            except SyncInterrupted:
                raise
            except Exception as e:
                if stats is not None:
                    stats.errors.append(str(e))
                raise

    async def _attempt(
        self,
        kind: OperationKind,
        source: Path,
        stats: SyncStats,
    ) -> list[str]:
        """One pass: fingerprint, look up checkpoint, plan, execute."""
        data = read_bytes(source)
        fingerprint = self.fingerprinter.fingerprint_bytes(
            data, self.settings.account, self.settings.workspace
        )
        checkpoint = self.store.get(kind, fingerprint)
        start_index = checkpoint.counter if checkpoint else 0

        records = parse_records(
            decode(data, source),
            RECORD_MODELS[kind],
            source=source,
            delimiter=self.settings.sync.csv_delimiter,
        )
        batches = self.planner.plan(records)

        stats.fingerprint = fingerprint
        stats.records_total = len(records)
        stats.batches_total = len(batches)
        stats.batches_committed = start_index
        if stats.attempts <= 1:
            stats.resumed_from = start_index

        token = CancellationToken()
        with arm_interrupts(token, self.signals):
            try:
                await self.executor.run(
                    kind,
                    fingerprint,
                    batches,
                    start_index,
                    self._submitter(kind),
                    token,
                )
            finally:
                checkpoint = self.store.get(kind, fingerprint)
                stats.batches_committed = (
                    checkpoint.counter if checkpoint else len(batches)
                )

        return [record.key for record in records]

    def _submitter(self, kind: OperationKind) -> SubmitFn:
        if kind is OperationKind.IMPORT:
            return self.client.import_redirects
        return self.client.delete_redirects
