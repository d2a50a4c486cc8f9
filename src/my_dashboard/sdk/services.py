"""Resource groups exposed on ``DashboardClient``.

Each method maps to one REST endpoint and returns the decoded JSON payload
(camelCase keys, as sent by the API).
"""

from __future__ import annotations

import json
from datetime import date
from typing import TYPE_CHECKING, Any

from my_dashboard.sdk.errors import APIError

if TYPE_CHECKING:
    from my_dashboard.sdk.client import DashboardClient


class _Service:
    def __init__(self, client: DashboardClient) -> None:
        self._client = client


class TodosService(_Service):
    async def list(self) -> list[dict[str, Any]]:
        return await self._client.get("/api/to_do_list")

    async def get(self, todo_id: int) -> dict[str, Any]:
        return await self._client.get(f"/api/to_do_list/{todo_id}")

    async def create(self, *, title: str, **fields: Any) -> dict[str, Any]:
        return await self._client.post("/api/to_do_list", json={"title": title, **fields})

    async def update(self, todo_id: int, **fields: Any) -> dict[str, Any]:
        return await self._client.put(f"/api/to_do_list/{todo_id}", json=fields)

    async def delete(self, todo_id: int) -> None:
        await self._client.delete(f"/api/to_do_list/{todo_id}")


class NotificationsService(_Service):
    async def list(
        self, *, offset: int = 0, limit: int = 50, is_read: bool | None = None
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"offset": offset, "limit": limit}
        if is_read is not None:
            params["is_read"] = str(is_read).lower()
        return await self._client.get("/api/notifications", params=params)

    async def create(
        self,
        *,
        title: str,
        message: str,
        type: str = "info",
        link: str | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"title": title, "message": message, "type": type}
        if link is not None:
            body["link"] = link
        return await self._client.post("/api/notifications", json=body)

    async def mark_read(self, notification_id: int) -> None:
        await self._client.patch(f"/api/notifications/{notification_id}/read")

    async def mark_all_read(self) -> int:
        result = await self._client.patch("/api/notifications/read-all")
        return int(result["updated"])

    async def delete(self, notification_id: int) -> None:
        await self._client.delete(f"/api/notifications/{notification_id}")

    async def delete_all(self) -> int:
        result = await self._client.delete("/api/notifications")
        return int(result["deleted"])


class E2EService(_Service):
    async def get_report(
        self,
        report_date: date | str | None = None,
        *,
        enrichments: dict[str, bool] | None = None,
        force: bool = False,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if report_date is not None:
            params["date"] = (
                report_date.isoformat() if isinstance(report_date, date) else report_date
            )
        if enrichments is not None:
            params["enrichments"] = json.dumps(enrichments)
        if force:
            params["force"] = "true"
        return await self._client.get("/api/e2e_run_report", params=params)

    async def get_app_last_status(self, summary_id: int, app_id: int) -> dict[str, Any]:
        return await self._client.get(f"/api/e2e_run_report/{summary_id}/{app_id}")

    async def trigger_manual_run(self, app_id: int) -> dict[str, Any]:
        return await self._client.post("/api/e2e_manual_runs", json={"appId": app_id})

    async def list_manual_runs(
        self,
        app_id: int,
        *,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[dict[str, Any]]:
        params = {
            "from": from_date.isoformat() if from_date else None,
            "to": to_date.isoformat() if to_date else None,
        }
        return await self._client.get(f"/api/e2e_manual_runs/app/{app_id}", params=params)


class AppsService(_Service):
    async def list(self) -> list[dict[str, Any]]:
        return await self._client.get("/api/apps")

    async def watching(self) -> list[dict[str, Any]]:
        return await self._client.get("/api/apps/watching")

    async def get(self, app_id: int) -> dict[str, Any]:
        return await self._client.get(f"/api/apps/{app_id}")

    async def get_by_code(self, code: str) -> dict[str, Any]:
        return await self._client.get(f"/api/apps/code/{code}")

    async def create(self, *, name: str, code: str, **fields: Any) -> dict[str, Any]:
        return await self._client.post("/api/apps", json={"name": name, "code": code, **fields})

    async def update(self, app_id: int, **fields: Any) -> dict[str, Any]:
        return await self._client.put(f"/api/apps/{app_id}", json=fields)

    async def delete(self, app_id: int) -> None:
        await self._client.delete(f"/api/apps/{app_id}")


class PullRequestsService(_Service):
    async def list(self) -> list[dict[str, Any]]:
        return await self._client.get("/api/pull_requests")

    async def add(self, pull_request_number: int, repository: str) -> dict[str, Any]:
        return await self._client.post(
            "/api/pull_requests",
            json={"pullRequestNumber": pull_request_number, "repository": repository},
        )

    async def details(self, pr_id: int) -> dict[str, Any]:
        return await self._client.get(f"/api/pull_requests/{pr_id}")

    async def delete(self, pr_id: int) -> None:
        await self._client.delete(f"/api/pull_requests/{pr_id}")


class AuthService(_Service):
    async def validate(self, api_key: str) -> bool:
        """Return whether *api_key* is accepted by the server."""
        try:
            result = await self._client.post("/api/auth/validate", json={"apiKey": api_key})
        except APIError as exc:
            if exc.status == 401:
                return False
            raise
        return bool(result and result.get("valid"))


class FcmService(_Service):
    async def register_token(self, token: str) -> dict[str, Any]:
        return await self._client.post("/api/fcm/register-token", json={"token": token})

    async def unregister_token(self, token: str) -> bool:
        result = await self._client.post("/api/fcm/unregister-token", json={"token": token})
        return bool(result["removed"])


class JiraService(_Service):
    async def manual_qa(self) -> dict[str, Any]:
        return await self._client.get("/api/jira/manual_qa")

    async def my_tickets(self) -> dict[str, Any]:
        return await self._client.get("/api/jira/my_tickets")


class HealthService(_Service):
    async def check(self) -> dict[str, Any]:
        return await self._client.get("/health")
