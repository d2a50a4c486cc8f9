"""API error handling and authentication middleware.

Registers FastAPI exception handlers that convert exceptions into the
standard ``{"error": {"code", "message", "statusCode", ...}}`` envelope.

Status code mapping:
- ``AppError`` subclasses → their own status (400, 404, 409, 422, 502, ...)
- ``RequestValidationError`` → 400 VALIDATION_ERROR
- unknown routes → 404 NOT_FOUND
- ``asyncpg.PostgresError`` → 500 DATABASE_ERROR
- Any other ``Exception`` → 500 INTERNAL_ERROR
"""

from __future__ import annotations

import logging
import traceback
import uuid
from datetime import UTC, datetime
from typing import Any

import asyncpg
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from my_dashboard.api.models import ErrorDetail, ErrorResponse
from my_dashboard.core.logging import request_context
from my_dashboard.errors import AppError
from my_dashboard.services.auth import verify_api_key

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"
UNAUTHORIZED_BODY = {"error": "Unauthorized: Invalid or missing API key"}

_HTTP_CODES = {
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def _is_development(request: Request) -> bool:
    config = getattr(request.app.state, "config", None)
    return bool(config is not None and config.is_development)


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
    exc: BaseException | None = None,
) -> JSONResponse:
    """Build the standard error envelope; the stack is included in development."""
    stack = None
    if exc is not None and _is_development(request):
        stack = "".join(traceback.format_exception(exc))
    body = ErrorResponse(
        error=ErrorDetail(
            code=code,
            message=message,
            status_code=status_code,
            details=details,
            timestamp=datetime.now(UTC).isoformat(),
            path=request.url.path,
            method=request.method,
            stack=stack,
        )
    )
    return JSONResponse(status_code=status_code, content=body.to_content())


async def _handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "%s on %s %s: %s",
            exc.code,
            request.method,
            request.url.path,
            exc.message,
            exc_info=exc,
        )
    else:
        logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return error_response(
        request,
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
        exc=exc,
    )


async def _handle_request_validation(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return 400 with one entry per invalid field."""
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg"),
            "type": err.get("type"),
        }
        for err in exc.errors()
    ]
    logger.info("Request validation failed on %s %s: %s", request.method, request.url.path, details)
    return error_response(
        request,
        status_code=400,
        code="VALIDATION_ERROR",
        message="Request validation failed",
        details=details,
    )


async def _handle_http_exception(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    if exc.status_code == 404:
        message = f"Route {request.method} {request.url.path} not found"
    else:
        message = str(exc.detail)
    return error_response(
        request,
        status_code=exc.status_code,
        code=_HTTP_CODES.get(exc.status_code, "HTTP_ERROR"),
        message=message,
    )


async def _handle_postgres_error(request: Request, exc: asyncpg.PostgresError) -> JSONResponse:
    logger.error(
        "Database error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return error_response(
        request,
        status_code=500,
        code="DATABASE_ERROR",
        message="Database operation failed",
        exc=exc,
    )


class CatchAllErrorMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that catches any unhandled exception and returns a 500.

    This sits above the Starlette exception handler layer, ensuring that
    even exceptions not caught by ``add_exception_handler`` are converted
    to the standard error envelope rather than bubbling up as raw 500s.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            logger.error(
                "Unhandled exception on %s %s",
                request.method,
                request.url.path,
                exc_info=True,
            )
            return error_response(
                request,
                status_code=500,
                code="INTERNAL_ERROR",
                message="Internal server error",
                exc=exc,
            )


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind ``X-Request-ID`` (or a fresh uuid) to log records for the request."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        with request_context(request_id):
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class ApiKeyMiddleware(BaseHTTPMiddleware):
    """Require a valid ``x-api-key`` header on every ``/api/`` path.

    ``/api/auth/*`` is exempt so clients can validate a key.  When no key is
    configured every protected request is rejected.
    """

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not path.startswith("/api/") or path.startswith("/api/auth/"):
            return await call_next(request)

        config = getattr(request.app.state, "config", None)
        secret = config.auth.api_key if config is not None else None
        if not verify_api_key(request.headers.get(API_KEY_HEADER), secret):
            if not secret:
                logger.error("API_SECURITY_KEY is not configured; rejecting %s", path)
            else:
                logger.warning("Rejected request with invalid API key: %s %s", request.method, path)
            return JSONResponse(status_code=401, content=UNAUTHORIZED_BODY)
        return await call_next(request)


def register_error_handlers(app: FastAPI) -> None:
    """Attach all exception handlers and middleware to the FastAPI application.

    Call this from ``create_app()`` before adding CORS so that CORS stays the
    outermost layer and 401 responses still carry CORS headers.
    """
    app.add_exception_handler(AppError, _handle_app_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_request_validation)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)  # type: ignore[arg-type]
    app.add_exception_handler(asyncpg.PostgresError, _handle_postgres_error)  # type: ignore[arg-type]
    app.add_middleware(ApiKeyMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(CatchAllErrorMiddleware)
