"""Exception handlers mapping every failure onto the API error envelope."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from soma.errors import AppError, ErrorCode, error_response
from soma.logging import get_logger

logger = get_logger(__name__)

_REQUEST_PARTS = {"body", "query", "path", "header", "cookie"}
_UNPROCESSABLE = 422
_UPSTREAM_STATUSES = {502, 503, 504}


def _field_name(loc: Any) -> str:
    parts = [str(part) for part in (loc if isinstance(loc, (list, tuple)) else [loc])]
    if parts and parts[0] in _REQUEST_PARTS:
        parts = parts[1:]
    return ".".join(parts) or "?"


def _code_for_status(status_code: int) -> ErrorCode:
    if status_code == status.HTTP_404_NOT_FOUND:
        return ErrorCode.NOT_FOUND
    if status_code in _UPSTREAM_STATUSES:
        return ErrorCode.DEPENDENCY_ERROR
    if 400 <= status_code < 500:
        return ErrorCode.VALIDATION_ERROR
    return ErrorCode.INTERNAL_ERROR


async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [
        {"name": _field_name(error.get("loc", ())), "message": error.get("msg", "Invalid input.")}
        for error in exc.errors()
    ]
    return error_response(
        request,
        code=ErrorCode.VALIDATION_ERROR,
        status_code=_UNPROCESSABLE,
        message="Request validation failed.",
        meta={"fields": fields} if fields else None,
    )


async def _handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    # Unknown routes and wrong methods raised by the router itself.
    message = exc.detail if isinstance(exc.detail, str) and exc.detail else "Request failed."
    return error_response(
        request,
        code=_code_for_status(exc.status_code),
        status_code=exc.status_code,
        message=message,
        headers=exc.headers,
    )


async def _handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    return exc.to_response(request)


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return AppError().to_response(request)


def setup_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.add_exception_handler(HTTPException, _handle_http_exception)
    app.add_exception_handler(AppError, _handle_app_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)


__all__ = ["setup_exception_handlers"]
