"""Errors raised by the dashboard SDK."""

from __future__ import annotations

from typing import Any


class DashboardSDKError(Exception):
    """Base class for every SDK error."""


class APIError(DashboardSDKError):
    """The API answered with a non-2xx status (or the request could not complete)."""

    def __init__(self, status: int, message: str, response: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.message = message
        self.response = response

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status < 500

    @property
    def is_server_error(self) -> bool:
        return self.status >= 500

    @property
    def is_retryable(self) -> bool:
        return self.is_server_error or self.status == 429

    def __repr__(self) -> str:
        return f"APIError(status={self.status}, message={self.message!r})"


class NetworkError(DashboardSDKError):
    """The request never produced a response (connection refused, timeout, ...)."""

    def __init__(self, message: str, original: BaseException | None = None) -> None:
        super().__init__(message)
        self.original = original


class ConfigurationError(DashboardSDKError):
    """The client was constructed with missing or invalid settings."""
