"""Per-request ``api.request`` events."""

from __future__ import annotations

import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from soma.logging import get_logger
from soma.logging_events import log_event

logger = get_logger(__name__)


class APILoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and latency of every request, tagged with its request id."""

    async def dispatch(  # type: ignore[override]
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            log_event(
                logger,
                "api.request",
                component="api",
                status="ok" if status_code < 400 else "error",
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 3),
                entity_id=getattr(request.state, "request_id", None),
            )


__all__ = ["APILoggingMiddleware"]
