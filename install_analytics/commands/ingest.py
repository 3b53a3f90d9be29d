"""Run the install feed ingestion once from the command line."""

import asyncio

import click

from install_analytics.commands import command, error, info, success, warning
from install_analytics.ingestion import IngestionRun, RunStatus, build_pipeline


async def run_ingestion(batch_size: int | None, timeout: float | None) -> IngestionRun:
    from install_analytics.db.session import close_db

    pipeline = build_pipeline()
    if batch_size is not None:
        pipeline.batch_size = batch_size
    try:
        return await pipeline.run(timeout=timeout)
    finally:
        await close_db()


@command("ingest", help="Fetch the install feed once and store new installs")
@click.option("--batch-size", "-b", default=None, type=click.IntRange(min=1), help="Rows per flush (default: INGEST_BATCH_SIZE)")
@click.option("--timeout", "-t", default=None, type=float, help="Stop the run after this many seconds")
def ingest(batch_size: int | None, timeout: float | None) -> None:
    """
    Run one ingestion pass: fetch, parse, batch and persist the install feed.

    Exits with status 1 unless the run succeeds.

    Example:
        install-analytics cmd ingest
        install-analytics cmd ingest --batch-size 500 --timeout 120
    """
    run = asyncio.run(run_ingestion(batch_size, timeout))

    info(f"Run {run.run_id}: {run.rows_parsed} rows parsed in {run.batches_flushed} batches")
    if run.status is RunStatus.SUCCEEDED:
        success(f"Stored {run.rows_written} new installs.")
        return
    if run.status is RunStatus.CANCELLED:
        warning(f"Run cancelled after storing {run.rows_written} new installs.")
    else:
        error(f"Run failed ({run.error_code}): {run.error}")
    raise SystemExit(1)
