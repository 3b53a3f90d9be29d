"""Application middleware and logging context variables."""

import logging
import time
from contextvars import ContextVar
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# Context variables for request- and run-scoped data
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
run_id_ctx: ContextVar[str | None] = ContextVar("run_id", default=None)

logger = logging.getLogger(__name__)


def get_logging_context() -> dict[str, str | None]:
    """Get the current logging context.

    Returns a dict with request_id and run_id from context variables.
    Useful for adding context to log records.
    """
    return {
        "request_id": request_id_ctx.get(),
        "run_id": run_id_ctx.get(),
    }


class LoggingContextMiddleware(BaseHTTPMiddleware):
    """Middleware that adds logging context and timing to requests.

    The request_id is taken from X-Request-ID header if present,
    otherwise a new UUID is generated.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        """Process request with logging context."""
        request_id = getattr(request.state, "request_id", None) or request.headers.get(
            "X-Request-ID", str(uuid4())
        )
        request_id_ctx.set(request_id)

        start_time = time.perf_counter()

        logger.info(
            "Request started",
            extra={
                "method": request.method,
                "path": request.url.path,
            },
        )

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000

        logger.info(
            "Request completed",
            extra={
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )

        response.headers["X-Request-ID"] = request_id
        return response


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware that adds a unique request ID to each request.

    The ID is added to the response headers and is available in
    request.state.request_id.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        """Add request ID to request state and response headers."""
        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
