"""
Batch Planner - Deterministic fixed-size batching.

Splits an ordered record list into contiguous batches of at most
``max_batch_size`` records. Checkpoints store only a batch count, so the
same input and batch size must always produce the same plan.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Iterator, Sequence, TypeVar

from redirect_sync.config import Limits

RecordT = TypeVar("RecordT")


@dataclass(frozen=True)
class Batch(Generic[RecordT]):
    """A contiguous slice of the planned record sequence."""

    index: int
    records: tuple[RecordT, ...]
    start_offset: int
    end_offset: int

    def __len__(self) -> int:
        return len(self.records)


class BatchPlanner:
    """
    Fixed-size batch planner.

    Example:
        planner = BatchPlanner(500)

        for batch in planner.plan(redirects):
            await client.import_redirects(batch.records)
    """

    def __init__(self, max_batch_size: int) -> None:
        """
        Initialize planner.

        Args:
            max_batch_size: Maximum records per batch
        """
        if max_batch_size < 1:
            raise ValueError(f"max_batch_size must be >= 1, got {max_batch_size}")
        self.max_batch_size = max_batch_size

    @classmethod
    def from_limits(cls, limits: Limits) -> "BatchPlanner":
        return cls(limits.max_batch_size)

    def iter_batches(self, records: Sequence[RecordT]) -> Iterator[Batch[RecordT]]:
        """
        Yield batches in order; the last one may be short.

        Args:
            records: Ordered records

        Yields:
            Batch objects
        """
        size = self.max_batch_size
        for index, start in enumerate(range(0, len(records), size)):
            chunk = tuple(records[start:start + size])
            yield Batch(
                index=index,
                records=chunk,
                start_offset=start,
                end_offset=start + len(chunk) - 1,
            )

    def plan(self, records: Sequence[RecordT]) -> list[Batch[RecordT]]:
        """Plan all batches for ``records``."""
        return list(self.iter_batches(records))

    def estimate_batches_needed(self, total_records: int) -> int:
        """Number of batches ``total_records`` will be split into."""
        if total_records <= 0:
            return 0
        return (total_records + self.max_batch_size - 1) // self.max_batch_size
