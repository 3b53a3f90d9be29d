"""Tests for single-flight run scheduling."""

import asyncio

import pytest

from install_analytics.ingestion.pipeline import IngestionRun, RunStatus
from install_analytics.ingestion.scheduler import IngestionScheduler


class FakePipeline:
    """Pipeline stand-in whose runs block until released or cancelled."""

    def __init__(self, honour_cancel: bool = True) -> None:
        self.honour_cancel = honour_cancel
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.runs = 0
        self.cancel_events: list[asyncio.Event | None] = []
        self.timeouts: list[float | None] = []

    async def run(
        self,
        cancel_event: asyncio.Event | None = None,
        timeout: float | None = None,
        run: IngestionRun | None = None,
    ) -> IngestionRun:
        run = run if run is not None else IngestionRun()
        self.runs += 1
        self.cancel_events.append(cancel_event)
        self.timeouts.append(timeout)
        self.started.set()

        waiters = [asyncio.ensure_future(self.release.wait())]
        if self.honour_cancel and cancel_event is not None:
            waiters.append(asyncio.ensure_future(cancel_event.wait()))
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            run.status = RunStatus.CANCELLED
            raise
        finally:
            for waiter in waiters:
                waiter.cancel()

        cancelled = cancel_event is not None and cancel_event.is_set()
        run.status = RunStatus.CANCELLED if cancelled else RunStatus.SUCCEEDED
        return run


@pytest.mark.anyio
async def test_run_once_returns_the_run_report():
    pipeline = FakePipeline()
    pipeline.release.set()
    scheduler = IngestionScheduler(pipeline, interval_seconds=30, run_timeout=5.0)

    run = await scheduler.run_once()

    assert run is not None
    assert run.status is RunStatus.SUCCEEDED
    assert scheduler.last_run is run
    assert scheduler.runs_completed == 1
    assert pipeline.timeouts == [5.0]


@pytest.mark.anyio
async def test_tick_while_running_is_dropped():
    pipeline = FakePipeline()
    scheduler = IngestionScheduler(pipeline, interval_seconds=30)

    assert scheduler.tick() is True
    await pipeline.started.wait()

    assert scheduler.tick() is False
    assert scheduler.tick() is False
    assert scheduler.skipped_ticks == 2
    assert scheduler.run_in_progress

    pipeline.release.set()
    await scheduler._run_task

    assert pipeline.runs == 1
    assert scheduler.runs_completed == 1
    assert not scheduler.run_in_progress


@pytest.mark.anyio
async def test_run_once_during_a_tick_run_is_skipped():
    pipeline = FakePipeline()
    scheduler = IngestionScheduler(pipeline, interval_seconds=30)

    scheduler.tick()
    await pipeline.started.wait()

    assert await scheduler.run_once() is None
    assert scheduler.skipped_ticks == 1

    pipeline.release.set()
    await scheduler._run_task


@pytest.mark.anyio
async def test_next_tick_after_completion_starts_a_fresh_run():
    pipeline = FakePipeline()
    pipeline.release.set()
    scheduler = IngestionScheduler(pipeline, interval_seconds=30)

    scheduler.tick()
    await scheduler._run_task
    scheduler.tick()
    await scheduler._run_task

    assert pipeline.runs == 2
    assert scheduler.skipped_ticks == 0
    assert pipeline.cancel_events[0] is not pipeline.cancel_events[1]


@pytest.mark.anyio
async def test_start_ticks_immediately_and_stop_signals_the_run():
    pipeline = FakePipeline()
    scheduler = IngestionScheduler(pipeline, interval_seconds=30)

    await scheduler.start()
    await pipeline.started.wait()
    assert scheduler.running

    await scheduler.stop()

    assert not scheduler.running
    assert pipeline.cancel_events[0].is_set()
    assert scheduler.last_run.status is RunStatus.CANCELLED


@pytest.mark.anyio
async def test_stop_cancels_a_run_that_ignores_the_signal_and_records_it():
    pipeline = FakePipeline(honour_cancel=False)
    scheduler = IngestionScheduler(pipeline, interval_seconds=30, shutdown_grace_seconds=0.05)

    await scheduler.start()
    await pipeline.started.wait()
    await scheduler.stop()

    assert scheduler._run_task.cancelled()
    assert scheduler.runs_completed == 1
    assert scheduler.last_run.status is RunStatus.CANCELLED
    assert scheduler.snapshot()["last_run"]["status"] == "cancelled"
    assert not scheduler.run_in_progress


@pytest.mark.anyio
async def test_loop_fires_on_every_interval():
    pipeline = FakePipeline()
    pipeline.release.set()
    scheduler = IngestionScheduler(pipeline, interval_seconds=0.01)

    await scheduler.start()
    await asyncio.sleep(0.1)
    await scheduler.stop()

    assert pipeline.runs >= 2


@pytest.mark.anyio
async def test_snapshot_reports_scheduler_state():
    pipeline = FakePipeline()
    pipeline.release.set()
    scheduler = IngestionScheduler(pipeline, interval_seconds=30)
    await scheduler.run_once()

    snapshot = scheduler.snapshot()

    assert snapshot["running"] is False
    assert snapshot["run_in_progress"] is False
    assert snapshot["interval_seconds"] == 30
    assert snapshot["runs_completed"] == 1
    assert snapshot["last_run"]["status"] == "succeeded"
