"""Cypress Cloud enterprise-reporting client."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

import httpx

from my_dashboard.clients.http import build_client, request_json
from my_dashboard.errors import ServiceUnavailableError

logger = logging.getLogger(__name__)

_REPORT_PATH = "/enterprise-reporting/report"


class CypressClient:
    """Fetches per-spec run rows from the Cypress Cloud reporting API.

    Each returned row is a dict with at least ``project_name``,
    ``run_number``, ``status`` and ``created_at``.
    """

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://cloud.cypress.io",
        branch: str = "master",
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._branch = branch
        self._client = build_client(base_url=base_url, transport=transport)

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def fetch_spec_details(
        self,
        projects: list[str],
        start_date: date,
        end_date: date,
    ) -> list[dict[str, Any]]:
        """Return ``spec-details`` rows for *projects* between the two dates."""
        if not self._api_key:
            raise ServiceUnavailableError("CYPRESS_API_KEY is not configured")

        params: list[tuple[str, str]] = [
            ("report_id", "spec-details"),
            ("token", self._api_key),
            ("export_format", "json"),
            ("start_date", start_date.isoformat()),
            ("end_date", end_date.isoformat()),
        ]
        if self._branch:
            params.append(("branch", self._branch))
        params.extend(("projects", project) for project in projects)

        logger.debug(
            "Fetching Cypress spec details for %d project(s) from %s to %s",
            len(projects),
            start_date,
            end_date,
        )
        rows = await request_json(self._client, "Cypress", "GET", _REPORT_PATH, params=params)
        if not isinstance(rows, list):
            return []
        return rows

    async def aclose(self) -> None:
        await self._client.aclose()
