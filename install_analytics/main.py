"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from install_analytics.api.exception_handlers import register_exception_handlers
from install_analytics.api.router import api_router
from install_analytics.core.config import settings
from install_analytics.core.logfire_setup import instrument_app, setup_logfire
from install_analytics.core.logging_config import setup_logging
from install_analytics.core.middleware import LoggingContextMiddleware, RequestIDMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan - startup and shutdown events.

    Starts the install feed scheduler on startup and winds it down before
    the database engine is disposed.
    """
    # === Startup ===
    setup_logging()
    setup_logfire()
    from install_analytics.core.logfire_setup import instrument_asyncpg, instrument_httpx

    instrument_asyncpg()
    instrument_httpx()

    scheduler = None
    if settings.INGEST_ENABLED:
        from install_analytics.ingestion import build_scheduler

        scheduler = build_scheduler()
        await scheduler.start()
    app.state.scheduler = scheduler

    yield

    # === Shutdown ===
    if scheduler is not None:
        await scheduler.stop()

    from install_analytics.db.session import close_db

    await close_db()


# Environments where API docs should be visible
SHOW_DOCS_ENVIRONMENTS = ("local", "staging", "development")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    show_docs = settings.ENVIRONMENT in SHOW_DOCS_ENVIRONMENTS

    openapi_tags = [
        {
            "name": "health",
            "description": "Health check endpoints for monitoring and Kubernetes probes",
        },
        {
            "name": "analytics",
            "description": "Read-only install analytics",
        },
    ]

    app = FastAPI(
        title=settings.PROJECT_NAME,
        summary="Install feed ingestion and analytics",
        version="0.1.0",
        openapi_url="/openapi.json" if show_docs else None,
        docs_url="/docs" if show_docs else None,
        redoc_url="/redoc" if show_docs else None,
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    instrument_app(app)

    # Logging context middleware (adds request_id and timing)
    app.add_middleware(LoggingContextMiddleware)

    # Request ID middleware (for request correlation/debugging)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(api_router)

    return app


app = create_app()
