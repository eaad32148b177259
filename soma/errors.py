"""Error envelope returned by the transfer API for every non-success response."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any, ClassVar
from uuid import uuid4

from fastapi import Request, status
from fastapi.responses import JSONResponse

from soma.logging import get_logger
from soma.logging_events import log_event

logger = get_logger(__name__)

DEBUG_ID_HEADER = "X-Debug-Id"


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    DEPENDENCY_ERROR = "DEPENDENCY_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppError(Exception):
    """Base class for errors rendered as ``{"ok": false, "error": {...}}``.

    Subclasses pin ``code`` and ``http_status``; ``meta`` carries flat,
    client-safe context such as the offending link or transfer id.
    """

    code: ClassVar[ErrorCode] = ErrorCode.INTERNAL_ERROR
    http_status: ClassVar[int] = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: ClassVar[str] = "An unexpected error occurred."

    def __init__(self, message: str | None = None, *, meta: Mapping[str, Any] | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)
        self.meta = dict(meta) if meta else None

    def to_response(self, request: Request) -> JSONResponse:
        return error_response(
            request,
            code=self.code,
            status_code=self.http_status,
            message=self.message,
            meta=self.meta,
        )


class ValidationAppError(AppError):
    code = ErrorCode.VALIDATION_ERROR
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = "Request could not be completed."


class NotFoundError(AppError):
    code = ErrorCode.NOT_FOUND
    http_status = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found."


class DependencyError(AppError):
    """A collaborator the request needs, such as the transfer worker, is unavailable."""

    code = ErrorCode.DEPENDENCY_ERROR
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Upstream service is unavailable."


def error_response(
    request: Request,
    *,
    code: ErrorCode,
    status_code: int,
    message: str,
    meta: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    """Render the error envelope and tag it with a fresh debug id."""

    debug_id = uuid4().hex
    error: dict[str, Any] = {"code": code.value, "message": message}
    if meta:
        error["meta"] = dict(meta)

    response = JSONResponse(status_code=status_code, content={"ok": False, "error": error})
    if headers:
        response.headers.update(headers)
    response.headers[DEBUG_ID_HEADER] = debug_id

    log_event(
        logger,
        "api.error",
        component="api",
        status="error",
        code=code.value,
        status_code=status_code,
        method=request.method,
        path=request.url.path,
        debug_id=debug_id,
        entity_id=getattr(request.state, "request_id", None),
    )
    return response


__all__ = [
    "AppError",
    "DEBUG_ID_HEADER",
    "DependencyError",
    "ErrorCode",
    "NotFoundError",
    "ValidationAppError",
    "error_response",
]
