"""Structured logging configuration.

Readable coloured output for development, JSON for production, and an
optional rotating JSON file for post-mortem inspection of ingestion runs.
"""

import json
import logging
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, ClassVar

from install_analytics.core.config import settings

# Log file configuration
LOG_DIR = Path(__file__).parent.parent.parent / "logs"
LOG_FILE = LOG_DIR / "app.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_FILE_BACKUP_COUNT = 5

# Attributes every LogRecord carries; anything else came in through `extra=`.
_RECORD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and value is not None
    }


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as a JSON string."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.pathname:
            log_data["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        log_data.update(_extra_fields(record))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ReadableFormatter(logging.Formatter):
    """Human-readable coloured formatter for local development."""

    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET: ClassVar[str] = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record for readable output."""
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.now().strftime("%H:%M:%S")

        message = f"{color}{timestamp} [{record.levelname:8}]{self.RESET} {record.name}: {record.getMessage()}"

        extras = [f"{key}={value}" for key, value in _extra_fields(record).items()]
        if extras:
            message += f" | {' '.join(extras)}"

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return message


class ContextFilter(logging.Filter):
    """Filter that adds request_id and run_id context variables to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add context to the log record."""
        from install_analytics.core.middleware import get_logging_context

        for key, value in get_logging_context().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


def setup_logging(enable_file_logging: bool = True) -> None:
    """Set up logging configuration based on environment.

    Args:
        enable_file_logging: Whether to also write JSON logs to logs/app.log
            with rotation (10MB max, 5 backups).
    """
    is_production = settings.ENVIRONMENT == "production"

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

    context_filter = ContextFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(JSONFormatter() if is_production else ReadableFormatter())
    console_handler.addFilter(context_filter)
    root_logger.addHandler(console_handler)

    if enable_file_logging:
        try:
            LOG_DIR.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                LOG_FILE,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUP_COUNT,
                encoding="utf-8",
            )
            file_handler.setFormatter(JSONFormatter())
            file_handler.setLevel(logging.DEBUG)
            file_handler.addFilter(context_filter)
            root_logger.addHandler(file_handler)
            logging.info(f"File logging enabled: {LOG_FILE}")
        except OSError as e:
            logging.warning(f"Could not enable file logging: {e}")

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
