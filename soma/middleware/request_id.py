"""Middleware for generating and propagating request identifiers."""

from __future__ import annotations

from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Reuse the caller's request id or mint one, and echo it on the response."""

    def __init__(self, app: ASGIApp, *, header_name: str = REQUEST_ID_HEADER) -> None:
        super().__init__(app)
        self._header_name = header_name

    async def dispatch(  # type: ignore[override]
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(self._header_name, "").strip() or uuid4().hex
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers.setdefault(self._header_name, request_id)
        return response


__all__ = ["REQUEST_ID_HEADER", "RequestIDMiddleware"]
