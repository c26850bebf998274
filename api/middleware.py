"""Custom middleware for the PR updater API.

This module provides middleware for request logging and response timing.
"""

import time
import uuid
from collections.abc import Awaitable, Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger(__name__)

DELIVERY_HEADER = "X-GitHub-Delivery"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware that logs every request and its response.

    The request ID is the GitHub delivery ID when the request carries one,
    so a delivery can be traced from GitHub's delivery log to our logs. It
    is bound to structlog's context variables for the duration of the
    request and echoed in the ``X-Request-ID`` response header.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """Process the request and log details.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware or route handler.

        Returns:
            The HTTP response.
        """
        request_id = request.headers.get(DELIVERY_HEADER) or str(uuid.uuid4())[:8]
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.info(
            "Request started",
            method=request.method,
            path=request.url.path,
            github_event=request.headers.get("X-GitHub-Event"),
        )

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                "Request failed with unhandled exception",
                method=request.method,
                path=request.url.path,
                error=str(e),
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000

        log_level = "info" if response.status_code < 400 else "warning"
        getattr(logger, log_level)(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        structlog.contextvars.clear_contextvars()

        response.headers["X-Request-ID"] = request_id
        return response


class TimingMiddleware(BaseHTTPMiddleware):
    """Middleware that adds an ``X-Response-Time`` header."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """Process the request and add timing header."""
        start_time = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

        return response
