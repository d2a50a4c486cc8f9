"""Async HTTP client for the dashboard API.

Usage::

    async with DashboardClient("http://localhost:3000", api_key) as client:
        todos = await client.todos.list()
        await client.notifications.create(title="Hi", message="There")

Successful responses are unwrapped from the ``{"data": ...}`` envelope.
Server errors, 429s and transport failures are retried with exponential
backoff; everything else raises immediately.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any

import httpx

from my_dashboard.sdk.errors import APIError, ConfigurationError, NetworkError
from my_dashboard.sdk.services import (
    AppsService,
    AuthService,
    E2EService,
    FcmService,
    HealthService,
    JiraService,
    NotificationsService,
    PullRequestsService,
    TodosService,
)

logger = logging.getLogger(__name__)

BASE_RETRY_DELAY_S = 1.0
JITTER_RATIO = 0.1

_STATUS_MESSAGES = {
    401: "Invalid API key - check your credentials",
    403: "Access forbidden",
    404: "Resource not found",
}


def backoff_delay(attempt: int) -> float:
    """Delay before retry *attempt* (1-based): ``1s * 2^(n-1)`` plus up to 10% jitter."""
    delay = BASE_RETRY_DELAY_S * (2 ** (attempt - 1))
    return delay + random.uniform(0, JITTER_RATIO * delay)


def _retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get("Retry-After")
    if raw is None:
        return None
    try:
        return max(0.0, float(raw))
    except ValueError:
        return None


def _error_message(response: httpx.Response) -> tuple[str, Any]:
    """Extract the server's error message from either error body shape."""
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or "Unknown error", None
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, str):
        return error, body
    if isinstance(error, dict):
        return error.get("message") or "Unknown error", error
    return "Unknown error", body


def _raise_for_response(response: httpx.Response) -> None:
    status = response.status_code
    if status < 400:
        return
    if status in _STATUS_MESSAGES:
        _message, body = _error_message(response)
        raise APIError(status, _STATUS_MESSAGES[status], body)
    if status >= 500:
        _message, body = _error_message(response)
        raise APIError(status, "Server error - please try again later", body)
    message, body = _error_message(response)
    raise APIError(status, message, body)


class DashboardClient:
    """Entry point of the SDK; resource groups hang off it as attributes."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 30.0,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ConfigurationError("base_url is required")
        if not api_key:
            raise ConfigurationError("api_key is required")
        if max_retries < 0:
            raise ConfigurationError("max_retries must be >= 0")

        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"x-api-key": api_key, "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

        self.todos = TodosService(self)
        self.notifications = NotificationsService(self)
        self.e2e = E2EService(self)
        self.apps = AppsService(self)
        self.pull_requests = PullRequestsService(self)
        self.auth = AuthService(self)
        self.fcm = FcmService(self)
        self.jira = JiraService(self)
        self.health = HealthService(self)

    async def __aenter__(self) -> DashboardClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _send_once(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None,
        json: Any,
    ) -> httpx.Response:
        try:
            return await self._http.request(method, path, params=params, json=json)
        except httpx.TransportError as exc:
            raise NetworkError(f"Network error: {exc}", exc) from exc

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        unwrap: bool = True,
    ) -> Any:
        """Send a request with retries and return the (unwrapped) JSON body."""
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        attempt = 0
        while True:
            attempt += 1
            retry_after: float | None = None
            try:
                response = await self._send_once(method, path, params=params, json=json)
                retry_after = _retry_after(response)
                _raise_for_response(response)
            except (APIError, NetworkError) as exc:
                retryable = isinstance(exc, NetworkError) or exc.is_retryable
                if not retryable or attempt > self.max_retries:
                    raise
                delay = retry_after if retry_after is not None else backoff_delay(attempt)
                logger.warning(
                    "%s %s failed (attempt %d/%d): %s; retrying in %.2fs",
                    method,
                    path,
                    attempt,
                    self.max_retries + 1,
                    exc,
                    delay,
                )
                await asyncio.sleep(delay)
                continue
            break

        if response.status_code == 204 or not response.content:
            return None
        try:
            body = response.json()
        except ValueError:
            return None
        if unwrap and isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> Any:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> Any:
        return await self.request("PUT", path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> Any:
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)
