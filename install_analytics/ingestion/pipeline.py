"""One ingestion run: fetch -> parse -> batch -> persist."""

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

import logfire

from install_analytics.core.exceptions import IngestionCancelled, IngestionError
from install_analytics.core.middleware import run_id_ctx
from install_analytics.ingestion.batcher import Batcher
from install_analytics.ingestion.fetcher import FeedFetcher
from install_analytics.ingestion.parser import parse_feed
from install_analytics.ingestion.writer import InstallWriter

logger = logging.getLogger(__name__)


class RunStatus(StrEnum):
    """Terminal state of an ingestion run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class IngestionRun:
    """Outcome report of one ingestion run.

    Attributes:
        run_id: Short identifier, also attached to every log line of the run.
        status: Terminal state, None while the run is executing.
        rows_parsed: Rows produced by the parser.
        rows_written: Rows newly stored (duplicates excluded).
        batches_flushed: Completed flushes. These stay committed even when
            the run later fails.
        error: Failure message for FAILED runs.
        error_code: Error class code for FAILED runs.
    """

    run_id: str = field(default_factory=lambda: uuid4().hex[:12])
    status: RunStatus | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None
    rows_parsed: int = 0
    rows_written: int = 0
    batches_flushed: int = 0
    error: str | None = None
    error_code: str | None = None

    @property
    def duration_seconds(self) -> float | None:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value if self.status else None
        data["started_at"] = self.started_at.isoformat()
        data["finished_at"] = self.finished_at.isoformat() if self.finished_at else None
        data["duration_seconds"] = self.duration_seconds
        return data


class IngestionPipeline:
    """Runs the full install feed pipeline.

    A run never raises for ingestion faults: NetworkError, ParseError and
    StorageError end the run as FAILED, an observed stop signal ends it as
    CANCELLED. Batches flushed before either remain committed, and nothing
    is resumed; the next run starts from a fresh fetch.

    Usage:
        pipeline = IngestionPipeline(fetcher, writer, batch_size=100)
        run = await pipeline.run()
    """

    def __init__(
        self,
        fetcher: FeedFetcher,
        writer: InstallWriter,
        batch_size: int = 100,
    ) -> None:
        self.fetcher = fetcher
        self.writer = writer
        self.batch_size = batch_size

    async def run(
        self,
        cancel_event: asyncio.Event | None = None,
        timeout: float | None = None,
        run: IngestionRun | None = None,
    ) -> IngestionRun:
        """Execute one run.

        Args:
            cancel_event: External stop signal, e.g. set on shutdown.
            timeout: Optional deadline in seconds; when it passes the run
                stops as if `cancel_event` had been set.
            run: Report to fill in. The caller keeps it even when the task
                running this method is cancelled.

        Returns:
            The run report with a terminal status.
        """
        run = run if run is not None else IngestionRun()
        stop = cancel_event or asyncio.Event()
        deadline = asyncio.get_running_loop().call_later(timeout, stop.set) if timeout else None
        batcher = Batcher(self.writer.write, self.batch_size, should_stop=stop.is_set)
        token = run_id_ctx.set(run.run_id)

        try:
            with logfire.span("ingestion_run", run_id=run.run_id):
                logger.info(f"Starting install ingestion from {self.fetcher.display_url}")
                try:
                    async with self.fetcher.open() as chunks:
                        await batcher.consume(parse_feed(chunks))
                    run.status = RunStatus.SUCCEEDED
                except IngestionCancelled:
                    run.status = RunStatus.CANCELLED
                except IngestionError as e:
                    run.status = RunStatus.FAILED
                    run.error = e.message
                    run.error_code = e.code
                except Exception as e:
                    logger.exception("Unexpected error during ingestion run")
                    run.status = RunStatus.FAILED
                    run.error = str(e)
                    run.error_code = "unexpected_error"
        finally:
            if deadline is not None:
                deadline.cancel()
            if run.status is None:
                # Task cancelled from outside; the CancelledError propagates.
                run.status = RunStatus.CANCELLED
            self._finish(run, batcher)
            run_id_ctx.reset(token)

        return run

    @staticmethod
    def _finish(run: IngestionRun, batcher: Batcher) -> None:
        run.finished_at = datetime.now(UTC)
        run.rows_parsed = batcher.stats.rows_seen
        run.rows_written = batcher.stats.rows_written
        run.batches_flushed = batcher.stats.batches_flushed

        summary = {
            "status": run.status.value if run.status else None,
            "rows_parsed": run.rows_parsed,
            "rows_written": run.rows_written,
            "batches_flushed": run.batches_flushed,
            "duration_seconds": round(run.duration_seconds or 0.0, 3),
        }
        if run.status is RunStatus.SUCCEEDED:
            logger.info("Install ingestion succeeded", extra=summary)
        elif run.status is RunStatus.CANCELLED:
            logger.warning("Install ingestion cancelled", extra=summary)
        else:
            logger.error(f"Install ingestion failed: {run.error}", extra={**summary, "error_code": run.error_code})
