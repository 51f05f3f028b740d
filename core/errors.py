# core/errors.py
from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException

from core.logging import get_logger

logger = get_logger("Errors")


class ApiError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, errors: Optional[list[str]] = None,
                 status_code: Optional[int] = None):
        self.message = message or self.default_message
        self.errors = errors
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(ApiError):
    status_code = 400
    default_message = "Validation failed"


class AuthenticationError(ApiError):
    status_code = 401
    default_message = "Authentication required"


class InvalidToken(AuthenticationError):
    status_code = 403
    default_message = "Invalid or expired token"


class UnknownToken(AuthenticationError):
    """Refresh token that is no longer in the principal's live set."""
    status_code = 403
    default_message = "Invalid refresh token"


class AuthorizationError(ApiError):
    status_code = 403
    default_message = "Access denied"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class Conflict(ApiError):
    status_code = 400
    default_message = "Already exists"


class InsufficientBalance(ApiError):
    status_code = 400
    default_message = "Insufficient leave balance"


class OverlappingPeriod(ApiError):
    status_code = 400
    default_message = "Requested period overlaps an existing leave"


class InvalidState(ApiError):
    status_code = 400
    default_message = "Operation not allowed in the current state"


class InternalError(ApiError):
    status_code = 500
    default_message = "Database unavailable"


# ---------- envelope ----------
def ok(data: Any = None, message: Optional[str] = None) -> dict:
    body: dict = {"success": True}
    if message:
        body["message"] = message
    body["data"] = data
    return body


def _fail(status_code: int, message: str, errors: Optional[list] = None, **extra) -> JSONResponse:
    body: dict = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    body.update({k: v for k, v in extra.items() if v is not None})
    return JSONResponse(body, status_code=status_code)


def _field_messages(exc: RequestValidationError) -> list[str]:
    out = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        msg = str(err.get("msg", "Invalid value"))
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        out.append(f"{'.'.join(loc)}: {msg}" if loc else msg)
    return out


def init_error_handlers(app: FastAPI, expose_errors: bool = False) -> None:
    @app.exception_handler(ApiError)
    async def _api_error(request: Request, exc: ApiError):
        return _fail(exc.status_code, exc.message, exc.errors)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        return _fail(400, "Validation failed", _field_messages(exc))

    @app.exception_handler(HTTPException)
    async def _http_error(request: Request, exc: HTTPException):
        return _fail(exc.status_code, str(exc.detail))

    @app.exception_handler(OperationalError)
    async def _store_down(request: Request, exc: OperationalError):
        logger.error("Database error on %s %s: %s", request.method, request.url.path, exc.orig)
        err = InternalError()
        return _fail(err.status_code, err.message)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _fail(500, "Internal server error", error=str(exc) if expose_errors else None)
