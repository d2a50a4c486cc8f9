"""GitHub REST client for pull request details."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from my_dashboard.clients.http import build_client, request_json
from my_dashboard.errors import ServiceUnavailableError, ValidationError

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"


def split_repository(repository: str) -> tuple[str, str]:
    """Split ``owner/repo`` into its two parts."""
    owner, sep, repo = repository.partition("/")
    if not sep or not owner or not repo or "/" in repo:
        raise ValidationError(f"Invalid repository '{repository}', expected 'owner/repo'")
    return owner, repo


def format_pull_request(data: dict[str, Any]) -> dict[str, Any]:
    """Reduce a GitHub pull request payload to the fields the dashboard shows."""
    user = data.get("user") or {}
    return {
        "id": data.get("id"),
        "number": data.get("number"),
        "title": data.get("title"),
        "state": data.get("state"),
        "is_draft": bool(data.get("draft", False)),
        "url": data.get("html_url"),
        "created_at": data.get("created_at"),
        "updated_at": data.get("updated_at"),
        "closed_at": data.get("closed_at"),
        "merged_at": data.get("merged_at"),
        "labels": [
            {"name": label.get("name"), "color": label.get("color")}
            for label in data.get("labels") or []
        ],
        "mergeable_state": data.get("mergeable_state"),
        "merged": bool(data.get("merged", False)),
        "author": {
            "username": user.get("login"),
            "avatar_url": user.get("avatar_url"),
            "html_url": user.get("html_url"),
        },
    }


class GitHubClient:
    def __init__(
        self,
        token: str | None,
        base_url: str = "https://api.github.com",
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token = token
        self._client = build_client(
            base_url=base_url.rstrip("/"),
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {token or ''}",
                "X-GitHub-Api-Version": API_VERSION,
            },
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return bool(self._token)

    async def pull_request_details(self, repository: str, number: int) -> dict[str, Any]:
        if not self._token:
            raise ServiceUnavailableError("GITHUB_TOKEN is not configured")
        owner, repo = split_repository(repository)
        data = await request_json(
            self._client, "GitHub", "GET", f"/repos/{owner}/{repo}/pulls/{number}"
        )
        return format_pull_request(data)

    async def aclose(self) -> None:
        await self._client.aclose()
