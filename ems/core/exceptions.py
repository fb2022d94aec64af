"""
Domain error taxonomy + global exception handlers.

Every failure leaves the API as ``{"detail", "kind", "success": false}``
so clients can tell the kinds apart without parsing messages.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)


# ── Domain errors ───────────────────────────────────────────────────
class EMSError(Exception):
    """Base class for every error the core raises on purpose."""

    status_code = 500
    kind = "error"
    default_detail = "Request failed"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(EMSError):
    status_code = 400
    kind = "validation_error"
    default_detail = "Missing or invalid field"


class AuthenticationError(EMSError):
    status_code = 401
    kind = "authentication_error"
    default_detail = "Please log in"


class AuthorizationError(EMSError):
    status_code = 403
    kind = "authorization_error"
    default_detail = "Not permitted"


class NotFoundError(EMSError):
    status_code = 404
    kind = "not_found"
    default_detail = "Not found"


class ConflictError(EMSError):
    status_code = 409
    kind = "conflict"
    default_detail = "Username already taken, choose another username"


class StoreError(EMSError):
    status_code = 500
    kind = "store_error"
    default_detail = "Internal database error"


# ── Handlers ────────────────────────────────────────────────────────
def _error_body(detail: object, kind: str) -> dict:
    return {"detail": detail, "kind": kind, "success": False}


async def _ems_error_handler(request: Request, exc: EMSError) -> JSONResponse:
    if isinstance(exc, StoreError):
        logger.error("Store error: %s", exc.detail, exc_info=exc)
    elif isinstance(exc, AuthorizationError):
        logger.warning("Denied %s %s: %s", request.method, request.url.path, exc.detail)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.detail, exc.kind),
        headers=headers,
    )


async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.detail, "http_error"),
        headers=getattr(exc, "headers", None),
    )


async def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("Rate limit hit on %s: %s", request.url.path, exc.detail)
    return JSONResponse(
        status_code=429,
        content=_error_body(f"Rate limit exceeded: {exc.detail}", "rate_limited"),
    )


async def _request_validation_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=_error_body(jsonable_encoder(exc.errors()), ValidationError.kind),
    )


async def _integrity_error_handler(_request: Request, exc: IntegrityError) -> JSONResponse:
    logger.error("Database integrity error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=409,
        content=_error_body("Database constraint violation", ConflictError.kind),
    )


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content=_error_body("Internal database error", StoreError.kind),
    )


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content=_error_body("Internal server error", "internal_error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(EMSError, _ems_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
