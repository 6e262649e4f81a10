from __future__ import annotations

import logging
import traceback
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from marketplace.core.config import settings

log = logging.getLogger(__name__)


class AppError(HTTPException):
    status_code = 500
    default_message = "Server error"

    def __init__(self, message: str | None = None, *, errors: list[dict[str, Any]] | None = None):
        self.message = message or self.default_message
        self.errors = errors or []
        super().__init__(status_code=self.status_code, detail=self.message)


class ValidationFailed(AppError):
    status_code = 400
    default_message = "Validation failed"


class Unauthenticated(AppError):
    status_code = 401
    default_message = "Not authorized, no token"

    def __init__(self, message: str | None = None, *, errors: list[dict[str, Any]] | None = None):
        super().__init__(message, errors=errors)
        self.headers = {"WWW-Authenticate": "Bearer"}


class Forbidden(AppError):
    status_code = 403
    default_message = "Not authorized"


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


class Conflict(AppError):
    status_code = 409
    default_message = "Conflict"


def field_error(field: str, message: str) -> dict[str, str]:
    return {"field": field, "message": message}


def _envelope(message: str, errors: list[dict[str, Any]] | None = None, **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "message": message, "errors": errors or []}
    body.update(extra)
    return body


async def _app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope(exc.message, exc.errors),
        headers=getattr(exc, "headers", None),
    )


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope(message),
        headers=getattr(exc, "headers", None),
    )


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for err in exc.errors():
        # loc is ("body", "price") / ("query", "page"); drop the source prefix
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        errors.append(field_error(".".join(loc) or "request", err.get("msg", "Invalid value")))
    return JSONResponse(status_code=400, content=_envelope("Validation failed", errors))


async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled error on %s %s", request.method, request.url.path)
    extra = {} if settings.is_production else {"stack": "".join(traceback.format_exception(exc))}
    return JSONResponse(status_code=500, content=_envelope("Server error", **extra))


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, _app_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unexpected_error_handler)
