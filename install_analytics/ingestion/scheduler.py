"""Periodic, single-flight scheduling of ingestion runs."""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

from install_analytics.ingestion.pipeline import IngestionPipeline, IngestionRun

logger = logging.getLogger(__name__)


class IngestionScheduler:
    """Fires one ingestion run per interval.

    At most one run executes at a time. A tick that arrives while a run is
    still in progress is dropped (not queued) and counted in `skipped_ticks`.
    Failed runs are not retried; the next tick fetches the feed from scratch.

    Usage:
        scheduler = IngestionScheduler(pipeline, interval_seconds=30)
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        pipeline: IngestionPipeline,
        interval_seconds: float,
        run_timeout: float | None = None,
        shutdown_grace_seconds: float = 10.0,
    ) -> None:
        self.pipeline = pipeline
        self.interval_seconds = interval_seconds
        self.run_timeout = run_timeout
        self.shutdown_grace_seconds = shutdown_grace_seconds

        self.last_run: IngestionRun | None = None
        self.runs_completed = 0
        self.skipped_ticks = 0

        self._lock = asyncio.Lock()
        self._stopping = asyncio.Event()
        self._run_cancel: asyncio.Event | None = None
        self._loop_task: asyncio.Task[None] | None = None
        self._run_task: asyncio.Task[IngestionRun | None] | None = None

        logger.info(f"Ingestion scheduler initialized with interval: {interval_seconds}s")

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def run_in_progress(self) -> bool:
        return self._lock.locked() or (self._run_task is not None and not self._run_task.done())

    async def start(self) -> None:
        """Start the periodic tick loop in the background."""
        if self.running:
            return
        self._stopping.clear()
        self._loop_task = asyncio.create_task(self._tick_loop(), name="ingestion-scheduler")
        logger.info("Ingestion scheduler started")

    async def stop(self) -> None:
        """Stop ticking and wind down the run in progress.

        The active run is signalled to stop: a flush already under way
        completes, no new flush starts. If the run has not finished within
        the shutdown grace period its task is cancelled.
        """
        logger.info("Stopping ingestion scheduler")
        self._stopping.set()
        if self._run_cancel is not None:
            self._run_cancel.set()

        if self._loop_task is not None:
            await self._loop_task
            self._loop_task = None

        run_task = self._run_task
        if run_task is not None and not run_task.done():
            try:
                await asyncio.wait_for(asyncio.shield(run_task), timeout=self.shutdown_grace_seconds)
            except TimeoutError:
                logger.warning(
                    f"Ingestion run still active after {self.shutdown_grace_seconds}s, cancelling it"
                )
                run_task.cancel()
                await asyncio.gather(run_task, return_exceptions=True)

        logger.info("Ingestion scheduler stopped")

    def tick(self) -> bool:
        """Start a run in the background unless one is already in flight.

        Returns:
            True if a run was started, False if the tick was dropped.
        """
        if self.run_in_progress:
            self._skip()
            return False
        self._run_task = asyncio.create_task(self.run_once(), name="ingestion-run")
        return True

    async def run_once(self) -> IngestionRun | None:
        """Execute one run now, in the caller's task.

        Returns:
            The run report, or None if another run was in progress.
        """
        if self._lock.locked():
            self._skip()
            return None

        async with self._lock:
            self._run_cancel = asyncio.Event()
            if self._stopping.is_set():
                self._run_cancel.set()
            run = IngestionRun()
            try:
                await self.pipeline.run(cancel_event=self._run_cancel, timeout=self.run_timeout, run=run)
            finally:
                # Also reached when the run task is hard-cancelled on shutdown.
                self._run_cancel = None
                self.last_run = run
                self.runs_completed += 1

        return run

    def snapshot(self) -> dict[str, Any]:
        """Scheduler state for health reporting."""
        return {
            "running": self.running,
            "run_in_progress": self.run_in_progress,
            "interval_seconds": self.interval_seconds,
            "runs_completed": self.runs_completed,
            "skipped_ticks": self.skipped_ticks,
            "last_run": self.last_run.to_dict() if self.last_run else None,
            "checked_at": datetime.now(UTC).isoformat(),
        }

    async def _tick_loop(self) -> None:
        while not self._stopping.is_set():
            self.tick()
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)
            except TimeoutError:
                pass

    def _skip(self) -> None:
        self.skipped_ticks += 1
        logger.warning("Previous ingestion run still in progress, skipping this tick")
