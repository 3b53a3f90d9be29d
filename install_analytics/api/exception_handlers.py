"""Exception handlers translating application errors into HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from install_analytics.core.exceptions import AggregationError, AppError, ValidationError

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: dict[type[AppError], int] = {
    ValidationError: 400,
    AggregationError: 500,
}


def _error_body(exc: AppError) -> dict:
    return {
        "error": {
            "code": exc.code,
            "message": exc.message,
            "details": exc.details,
        }
    }


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an AppError as a JSON error response."""
    status_code = next(
        (status for error_type, status in STATUS_BY_ERROR.items() if isinstance(exc, error_type)),
        500,
    )
    if status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=status_code, content=_error_body(exc))


def register_exception_handlers(app: FastAPI) -> None:
    """Register application exception handlers on the app."""
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
