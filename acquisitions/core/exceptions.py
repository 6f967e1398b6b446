"""
Application error kinds and the global exception handlers.

Every failure the API reports on purpose is an ``AppError`` subclass
carrying its own status code and public message.  Anything else is
logged and answered with a generic 500 so no stack trace or driver
message leaks to clients.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


# ── Error kinds ─────────────────────────────────────────────────────
class AppError(Exception):
    status_code: int = 500
    error: str = "Internal server error"
    message: str | None = None

    def __init__(
        self,
        message: str | None = None,
        *,
        details: list[dict[str, Any]] | None = None,
    ) -> None:
        if message is not None:
            self.message = message
        self.details = details
        super().__init__(self.message or self.error)

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.error}
        if self.message:
            body["message"] = self.message
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationFailed(AppError):
    status_code = 400
    error = "Validation failed"


class Unauthenticated(AppError):
    status_code = 401
    error = "Authentication failed"


class MissingToken(Unauthenticated):
    error = "Authentication required"
    message = "No authorization token provided"


class MalformedAuthHeader(Unauthenticated):
    error = "Authentication required"
    message = "Invalid authorization header format. Use: Bearer <token>"


class TokenInvalid(Unauthenticated):
    message = "Invalid token"


class TokenExpired(Unauthenticated):
    message = "Token has expired"


class InvalidCredentials(Unauthenticated):
    error = "Invalid email or password"

    def to_body(self) -> dict[str, Any]:
        return {"error": self.error}


class Forbidden(AppError):
    status_code = 403
    error = "Forbidden"


class NotFound(AppError):
    status_code = 404
    error = "User not found"

    def to_body(self) -> dict[str, Any]:
        return {"error": self.error}


class Conflict(AppError):
    status_code = 409
    error = "Conflict"


class DuplicateEmail(Conflict):
    error = "User with this email already exists"

    def to_body(self) -> dict[str, Any]:
        return {"error": self.error}


class AdmissionBlocked(AppError):
    """Request refused by the abuse guard; ``reason`` is bot, rate_limit or shield."""

    _RESPONSES = {
        "bot": (403, "Access Denied", "Bot traffic is not allowed"),
        "rate_limit": (429, "Too many requests", "Request limit exceeded"),
        "shield": (403, "Forbidden", "Request blocked by security policy"),
    }

    def __init__(self, reason: str, message: str | None = None) -> None:
        status_code, error, default_message = self._RESPONSES[reason]
        self.reason = reason
        self.status_code = status_code
        self.error = error
        super().__init__(message or default_message)


class Internal(AppError):
    status_code = 500
    error = "Internal server error"


class ServiceUnavailable(Internal):
    message = "The request could not be completed"


class AdmissionUnavailable(Internal):
    message = "Something went wrong with security middleware"


@contextmanager
def collaborator_errors(log: logging.Logger, action: str, *args: Any) -> Iterator[None]:
    """Turn unexpected store / hasher failures into ``ServiceUnavailable``.

    ``AppError`` raised inside the block passes through untouched.
    """
    try:
        yield
    except AppError:
        raise
    except Exception as exc:
        log.exception("Error " + action, *args)
        raise ServiceUnavailable() from exc


# ── Handlers ────────────────────────────────────────────────────────
async def _app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def _validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in err["loc"][1:]) or "_",
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=ValidationFailed(details=details).to_body(),
    )


async def _http_exception_handler(
    _request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(status_code=500, content=Internal().to_body())


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(status_code=500, content=Internal().to_body())


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(AppError, _app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
