"""Application exception hierarchy.

Ingestion errors abort the current run and are reported by the scheduler.
Query errors are rendered by the API exception handlers.
"""

from typing import Any


class AppError(Exception):
    """Base class for all application errors."""

    code: str = "app_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(AppError):
    """Missing or malformed caller input, rejected before reaching the engine."""

    code = "validation_error"


class IngestionError(AppError):
    """Base class for failures that abort an ingestion run."""

    code = "ingestion_error"


class NetworkError(IngestionError):
    """Feed unreachable, timed out, or answered with a non-success status."""

    code = "network_error"


class ParseError(IngestionError):
    """Feed content could not be decoded into install rows."""

    code = "parse_error"


class StorageError(IngestionError):
    """Persistence fault unrelated to the deduplication key."""

    code = "storage_error"


class AggregationError(AppError):
    """Analytics query could not be executed."""

    code = "aggregation_error"


class IngestionCancelled(Exception):
    """Raised inside a run once its cancellation signal has been observed."""
