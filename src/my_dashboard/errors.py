"""Application error taxonomy.

Services raise these; ``my_dashboard.api.middleware`` converts them into the
standard error envelope with the matching HTTP status code.
"""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base class for errors that carry an HTTP status and a stable code."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        details: Any = None,
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class UnauthorizedError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(AppError):
    """Raised when a resource lookup by id finds nothing."""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: Any = None) -> None:
        if resource_id is None:
            message = f"{resource} not found"
        else:
            message = f"{resource} with id '{resource_id}' not found"
        super().__init__(message)
        self.resource = resource
        self.resource_id = resource_id


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"


class UnprocessableEntityError(AppError):
    status_code = 422
    code = "UNPROCESSABLE_ENTITY"


class TooManyRequestsError(AppError):
    status_code = 429
    code = "TOO_MANY_REQUESTS"


class InternalServerError(AppError):
    status_code = 500
    code = "INTERNAL_ERROR"


class ServiceUnavailableError(AppError):
    status_code = 503
    code = "SERVICE_UNAVAILABLE"


class DatabaseError(AppError):
    status_code = 500
    code = "DATABASE_ERROR"


class ForeignKeyError(DatabaseError):
    """A write referenced a row that does not exist (e.g. an unknown app id)."""


class ExternalServiceError(AppError):
    """An upstream HTTP API (Cypress, CircleCI, GitHub, Jira, FCM) failed."""

    status_code = 502
    code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, service: str, message: str, *, details: Any = None) -> None:
        super().__init__(f"{service}: {message}", details=details)
        self.service = service
