"""Bounded batching of parsed feed rows with cooperative backpressure."""

import asyncio
import logging
from collections.abc import AsyncIterable, Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field

from install_analytics.core.exceptions import IngestionCancelled

logger = logging.getLogger(__name__)

Row = Mapping[str, str]
FlushFn = Callable[[Sequence[Row]], Awaitable[int]]
StopCheck = Callable[[], bool]


@dataclass
class BatchStats:
    """Counters for one pass over the row stream."""

    rows_seen: int = 0
    rows_written: int = 0
    batches_flushed: int = 0
    flush_sizes: list[int] = field(default_factory=list)


class Batcher:
    """Groups rows into batches of at most `batch_size` and flushes each one.

    Rows are pulled one at a time and the next row is only requested after
    any pending flush has finished, so the producer is suspended for the
    whole duration of a flush and at most one flush is ever in flight.
    A non-empty remainder is flushed once at end of stream.

    When `should_stop` reports true, no new flush is started and the
    buffered rows are dropped; a flush already started always runs to
    completion, even if the surrounding task is cancelled.
    """

    def __init__(
        self,
        flush: FlushFn,
        batch_size: int = 100,
        should_stop: StopCheck | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._flush = flush
        self.batch_size = batch_size
        self._should_stop = should_stop or (lambda: False)
        self.stats = BatchStats()

    async def consume(self, rows: AsyncIterable[Row]) -> BatchStats:
        """Drain `rows`, flushing full batches and the final remainder.

        Raises:
            IngestionCancelled: If the stop signal was observed.
        """
        batch: list[Row] = []

        async for row in rows:
            self._check_stop(pending=len(batch))
            batch.append(row)
            self.stats.rows_seen += 1

            if len(batch) == self.batch_size:
                await self._flush_batch(batch)
                batch = []

        if batch:
            await self._flush_batch(batch)

        return self.stats

    async def _flush_batch(self, batch: list[Row]) -> None:
        self._check_stop(pending=len(batch))

        # The flush gets its own task so that cancelling the run cannot
        # interrupt a batch halfway through being written.
        flush = asyncio.ensure_future(self._flush(batch))
        try:
            written = await asyncio.shield(flush)
        except asyncio.CancelledError:
            if flush.cancelled():
                raise
            logger.info(f"Run cancelled during a flush, waiting for {len(batch)} rows to be written")
            self._record(batch, await flush)
            raise

        self._record(batch, written)

    def _record(self, batch: list[Row], written: int) -> None:
        self.stats.rows_written += written
        self.stats.batches_flushed += 1
        self.stats.flush_sizes.append(len(batch))
        logger.debug(
            f"Flushed batch {self.stats.batches_flushed}",
            extra={"batch_size": len(batch), "written": written},
        )

    def _check_stop(self, pending: int) -> None:
        if self._should_stop():
            if pending:
                logger.info(f"Stop requested, dropping {pending} unflushed rows")
            raise IngestionCancelled()
