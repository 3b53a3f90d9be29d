"""Logfire observability setup.

Spans are always emitted through the logfire API; they only leave the
process when a LOGFIRE_TOKEN is configured.
"""

import logging

import logfire
from fastapi import FastAPI

from install_analytics.core.config import settings

logger = logging.getLogger(__name__)


def setup_logfire() -> None:
    """Configure logfire for this service."""
    logfire.configure(
        token=settings.LOGFIRE_TOKEN,
        service_name=settings.LOGFIRE_SERVICE_NAME,
        environment=settings.LOGFIRE_ENVIRONMENT,
        send_to_logfire="if-token-present",
        console=False,
    )


def instrument_app(app: FastAPI) -> None:
    """Instrument FastAPI request handling."""
    if settings.LOGFIRE_TOKEN:
        logfire.instrument_fastapi(app)


def instrument_asyncpg() -> None:
    """Instrument asyncpg queries issued by the record store."""
    if settings.LOGFIRE_TOKEN:
        logfire.instrument_asyncpg()


def instrument_httpx() -> None:
    """Instrument outgoing feed requests."""
    if settings.LOGFIRE_TOKEN:
        logfire.instrument_httpx()
