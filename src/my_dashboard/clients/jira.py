"""Jira Cloud search client."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from my_dashboard.clients.http import build_client, request_json
from my_dashboard.errors import ServiceUnavailableError

logger = logging.getLogger(__name__)

MANUAL_QA_JQL = (
    'labels in ("manual_qa") AND "Status" NOT IN ("Done", "Ready to Release", "To Do") '
    'AND project = "Agent Client Tools" ORDER BY created DESC'
)
MY_TICKETS_JQL = "assignee = currentUser() AND resolution = Unresolved order by updated DESC"

SEARCH_FIELDS = "summary,status,created,updated,assignee,reporter,labels,parent,priority"


def format_issue(issue: dict[str, Any], base_url: str) -> dict[str, Any]:
    """Flatten a raw Jira issue into the dashboard's ticket shape."""
    base = base_url.rstrip("/")
    fields = issue.get("fields") or {}
    parent_raw = fields.get("parent")
    parent = None
    if parent_raw:
        parent = {
            "id": parent_raw.get("id"),
            "key": parent_raw.get("key"),
            "url": f"{base}/browse/{parent_raw.get('key')}",
            "summary": (parent_raw.get("fields") or {}).get("summary"),
        }
    return {
        "id": issue.get("id"),
        "key": issue.get("key"),
        "url": f"{base}/browse/{issue.get('key')}",
        "summary": fields.get("summary"),
        "status": (fields.get("status") or {}).get("name"),
        "created": fields.get("created"),
        "updated": fields.get("updated"),
        "assignee": (fields.get("assignee") or {}).get("displayName") or "Unassigned",
        "reporter": (fields.get("reporter") or {}).get("displayName") or "Unknown",
        "labels": fields.get("labels") or [],
        "priority": (fields.get("priority") or {}).get("name") or "None",
        "parent": parent,
    }


class JiraClient:
    def __init__(
        self,
        base_url: str | None,
        email: str | None,
        api_token: str | None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or "").rstrip("/")
        self._configured = bool(self._base_url and email and api_token)
        self._client = build_client(
            base_url=self._base_url,
            headers={"Accept": "application/json"},
            auth=(email or "", api_token or ""),
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return self._configured

    async def search(self, jql: str) -> dict[str, Any]:
        """Run *jql* and return ``{"total": n, "issues": [...]}`` with formatted issues."""
        if not self._configured:
            raise ServiceUnavailableError("Jira is not configured")
        data = await request_json(
            self._client,
            "Jira",
            "GET",
            "/rest/api/3/search/jql",
            params={"jql": jql, "fields": SEARCH_FIELDS},
        )
        issues = [format_issue(issue, self._base_url) for issue in data.get("issues") or []]
        logger.debug("Jira search returned %d issue(s)", len(issues))
        return {"total": data.get("total", len(issues)), "issues": issues}

    async def manual_qa_tickets(self) -> dict[str, Any]:
        return await self.search(MANUAL_QA_JQL)

    async def my_tickets(self) -> dict[str, Any]:
        return await self.search(MY_TICKETS_JQL)

    async def aclose(self) -> None:
        await self._client.aclose()
