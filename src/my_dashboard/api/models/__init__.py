"""Shared Pydantic response/request models for the dashboard API.

Provides the camelCase base model, the generic wrappers (ApiResponse,
PaginatedResponse), the error envelope and pagination metadata.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that serializes to camelCase and accepts either casing on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Base response wrappers
# ---------------------------------------------------------------------------


class ApiMeta(BaseModel):
    """Extensible metadata bag attached to every API response."""

    model_config = {"extra": "allow"}


class ApiResponse[T](BaseModel):
    """Generic API response wrapper.

    All successful responses follow ``{"data": T, "meta": {...}}``.
    """

    data: T
    meta: ApiMeta = Field(default_factory=ApiMeta)


class ErrorDetail(CamelModel):
    """Structured error payload."""

    code: str
    message: str
    status_code: int
    details: Any = None
    timestamp: str
    path: str
    method: str
    stack: str | None = None


class ErrorResponse(BaseModel):
    """Standard error response envelope."""

    error: ErrorDetail

    def to_content(self) -> dict[str, Any]:
        """JSON-ready body; ``stack`` is only present when it was captured."""
        content = self.model_dump(mode="json", by_alias=True)
        if content["error"]["stack"] is None:
            del content["error"]["stack"]
        return content


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


class PaginationMeta(CamelModel):
    """Pagination metadata for list endpoints."""

    total: int
    offset: int
    limit: int

    @property
    def has_more(self) -> bool:
        """True when more items exist beyond the current page."""
        return self.offset + self.limit < self.total


class PaginatedResponse[T](BaseModel):
    """API response wrapper for paginated list endpoints.

    ``{"data": [T, ...], "meta": PaginationMeta}``
    """

    data: list[T]
    meta: PaginationMeta
