"""Shared httpx helpers for the external service clients."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from my_dashboard.errors import ExternalServiceError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 30.0


def build_client(
    *,
    base_url: str = "",
    headers: dict[str, str] | None = None,
    auth: httpx.Auth | tuple[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    timeout: float = DEFAULT_TIMEOUT_S,
) -> httpx.AsyncClient:
    """Create an ``httpx.AsyncClient`` with the dashboard's defaults."""
    return httpx.AsyncClient(
        base_url=base_url,
        headers=headers,
        auth=auth,
        transport=transport,
        timeout=timeout,
    )


async def request_json(
    client: httpx.AsyncClient,
    service: str,
    method: str,
    url: str,
    **kwargs: Any,
) -> Any:
    """Send a request and return the decoded JSON body.

    Transport failures and non-2xx responses raise ``ExternalServiceError``
    carrying the upstream status code and a truncated body.
    """
    try:
        resp = await client.request(method, url, **kwargs)
    except httpx.HTTPError as exc:
        logger.warning("%s request %s %s failed: %s", service, method, url, exc)
        raise ExternalServiceError(service, f"request failed: {exc}") from exc

    if resp.is_error:
        logger.warning(
            "%s request %s %s returned %s", service, method, url, resp.status_code
        )
        raise ExternalServiceError(
            service,
            f"API request failed: {resp.status_code} {resp.reason_phrase}",
            details={"status": resp.status_code, "body": resp.text[:500]},
        )

    try:
        return resp.json()
    except ValueError as exc:
        raise ExternalServiceError(service, "response was not valid JSON") from exc
