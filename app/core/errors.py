"""
API error taxonomy and exception handlers.

Every failure leaves the API as a GraphQL-style error envelope:

    {"data": null, "errors": [{"message": "...", "extensions": {"code": "FORBIDDEN", "status": 403}}]}
"""
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class PingAPIError(HTTPException):
    """Base class for errors surfaced to API clients with an error code."""

    code: str = "INTERNAL_SERVER_ERROR"
    status_code_default: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str, headers: Optional[Dict[str, str]] = None):
        super().__init__(
            status_code=self.status_code_default,
            detail=detail,
            headers=headers,
        )


class UnauthenticatedError(PingAPIError):
    """No valid session for the request."""
    code = "UNAUTHENTICATED"
    status_code_default = status.HTTP_401_UNAUTHORIZED

    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(PingAPIError):
    """Friend-gating or role permission check failed."""
    code = "FORBIDDEN"
    status_code_default = status.HTTP_403_FORBIDDEN


class BadRequestError(PingAPIError):
    """Missing or malformed input for the current state."""
    code = "BAD_REQUEST"
    status_code_default = status.HTTP_400_BAD_REQUEST


class NotFoundError(PingAPIError):
    """Referenced record does not exist."""
    code = "NOT_FOUND"
    status_code_default = status.HTTP_404_NOT_FOUND


class ConflictError(PingAPIError):
    """Record already exists."""
    code = "CONFLICT"
    status_code_default = status.HTTP_409_CONFLICT


class InternalServerError(PingAPIError):
    """Unexpected datastore or invariant failure."""
    code = "INTERNAL_SERVER_ERROR"
    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR


_STATUS_CODES = {
    status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHENTICATED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_409_CONFLICT: "CONFLICT",
    status.HTTP_429_TOO_MANY_REQUESTS: "TOO_MANY_REQUESTS",
}


def error_body(message: str, code: str, status_code: int) -> Dict[str, Any]:
    """Build the error envelope returned to clients."""
    return {
        "data": None,
        "errors": [
            {
                "message": message,
                "extensions": {"code": code, "status": status_code},
            }
        ],
    }


async def ping_error_handler(request: Request, exc: PingAPIError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), exc.code, exc.status_code),
        headers=exc.headers,
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render plain HTTPExceptions (routing 404/405 etc.) in the same envelope."""
    code = _STATUS_CODES.get(exc.status_code, "INTERNAL_SERVER_ERROR")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), code, exc.status_code),
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(message, "BAD_REQUEST", status.HTTP_400_BAD_REQUEST),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error on %s %s: %s: %s",
        request.method,
        request.url.path,
        type(exc).__name__,
        exc,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(
            "Internal server error",
            "INTERNAL_SERVER_ERROR",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the envelope-producing handlers to the app."""
    app.add_exception_handler(PingAPIError, ping_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
