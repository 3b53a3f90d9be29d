"""Install feed ingestion: fetch, parse, batch and persist on a schedule."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from install_analytics.core.config import settings
from install_analytics.ingestion.fetcher import FeedFetcher
from install_analytics.ingestion.pipeline import IngestionPipeline, IngestionRun, RunStatus
from install_analytics.ingestion.scheduler import IngestionScheduler
from install_analytics.ingestion.writer import InstallWriter


def build_pipeline(session_factory: async_sessionmaker[AsyncSession] | None = None) -> IngestionPipeline:
    """Assemble the ingestion pipeline from settings."""
    if session_factory is None:
        from install_analytics.db.session import async_session_maker

        session_factory = async_session_maker

    return IngestionPipeline(
        fetcher=FeedFetcher(
            base_url=settings.FEED_BASE_URL,
            api_token=settings.FEED_API_TOKEN,
            timeout=settings.FEED_TIMEOUT_SECONDS,
        ),
        writer=InstallWriter(session_factory),
        batch_size=settings.INGEST_BATCH_SIZE,
    )


def build_scheduler(pipeline: IngestionPipeline | None = None) -> IngestionScheduler:
    """Assemble the ingestion scheduler from settings."""
    return IngestionScheduler(
        pipeline or build_pipeline(),
        interval_seconds=settings.INGEST_INTERVAL_SECONDS,
        run_timeout=settings.INGEST_RUN_TIMEOUT_SECONDS,
        shutdown_grace_seconds=settings.INGEST_SHUTDOWN_GRACE_SECONDS,
    )


__all__ = [
    "FeedFetcher",
    "IngestionPipeline",
    "IngestionRun",
    "IngestionScheduler",
    "InstallWriter",
    "RunStatus",
    "build_pipeline",
    "build_scheduler",
]
