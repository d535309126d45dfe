"""Request logging middleware.

Assigns each request an ``X-Request-ID`` (reusing a well-formed one sent by the
client), logs start and finish with the duration and records the outcome in
the application's metrics registry.
"""

import logging
import re
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from finsync.core.logging import filter_pii

logger = logging.getLogger(__name__)

_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def _incoming_request_id(request: Request) -> str | None:
    """Reuse a well-formed client X-Request-ID so retried calls keep their id."""
    value = request.headers.get("x-request-id")
    if value and _REQUEST_ID.match(value):
        return value
    return None


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log all HTTP requests with PII filtering."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = _incoming_request_id(request) or str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.perf_counter()
        path = filter_pii(str(request.url.path))
        metrics = getattr(request.app.state, "metrics", None)

        logger.info(
            "Request started",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": path,
                "client_ip": request.client.host if request.client else None,
            },
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = (time.perf_counter() - start_time) * 1000
            if metrics is not None:
                metrics.record_request(500, duration_ms)
            logger.error(
                "Request failed",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": path,
                    "duration_ms": int(duration_ms),
                    "error_type": type(exc).__name__,
                },
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        if metrics is not None:
            metrics.record_request(response.status_code, duration_ms)

        response.headers["X-Request-ID"] = request_id

        logger.info(
            "Request completed",
            extra={
                "request_id": request_id,
                "user_id": getattr(request.state, "user_id", None),
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": int(duration_ms),
            },
        )
        return response
