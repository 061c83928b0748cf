"""Chunked bulk writes.

The store caps a single atomic batch at 500 writes. BulkWriter accepts any
number of new rows, splits them into batches of at most that size and
commits each batch in order. Batches are independent: a failure in batch k
leaves batches before it committed and skips the rest. Nothing is rolled
back across batches.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from securemind.db.models import Base
from securemind.logging_config import get_logger

logger = get_logger(__name__)

MAX_BATCH_SIZE = 500


@dataclass
class BatchOutcome:
    """Result of committing one batch."""

    index: int
    size: int
    committed: bool
    error: str | None = None


class BulkWriteError(Exception):
    """A batch failed to commit. Earlier batches remain committed."""

    def __init__(self, outcomes: list[BatchOutcome], cause: Exception) -> None:
        failed = outcomes[-1]
        super().__init__(f"Batch {failed.index} of bulk write failed: {cause}")
        self.outcomes = outcomes
        self.cause = cause

    @property
    def committed_count(self) -> int:
        return sum(o.size for o in self.outcomes if o.committed)


@dataclass
class BulkWriter:
    """Accumulate rows and commit them in size-limited batches."""

    db: AsyncSession
    batch_size: int = MAX_BATCH_SIZE
    _pending: list[Base] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        if not 1 <= self.batch_size <= MAX_BATCH_SIZE:
            raise ValueError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}")

    def add(self, row: Base) -> None:
        self._pending.append(row)

    def extend(self, rows: Iterable[Base]) -> None:
        self._pending.extend(rows)

    def __len__(self) -> int:
        return len(self._pending)

    async def commit(self) -> list[BatchOutcome]:
        """Commit all pending rows batch by batch.

        Returns one outcome per batch. Raises BulkWriteError on the first
        failing batch, carrying the outcomes up to and including it.
        """
        rows, self._pending = self._pending, []
        outcomes: list[BatchOutcome] = []

        for index, start in enumerate(range(0, len(rows), self.batch_size)):
            batch = rows[start : start + self.batch_size]
            try:
                self.db.add_all(batch)
                await self.db.commit()
            except Exception as e:
                await self.db.rollback()
                outcomes.append(
                    BatchOutcome(index=index, size=len(batch), committed=False, error=str(e))
                )
                logger.error(
                    "Bulk write batch failed",
                    batch=index,
                    size=len(batch),
                    committed_batches=index,
                    error=str(e),
                )
                raise BulkWriteError(outcomes, e) from e
            outcomes.append(BatchOutcome(index=index, size=len(batch), committed=True))

        logger.debug("Bulk write complete", rows=len(rows), batches=len(outcomes))
        return outcomes
