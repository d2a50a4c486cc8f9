"""Tests for GET /api/e2e_run_report and the per-app refresh endpoint."""

from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from my_dashboard.api.routers import e2e_reports as router_module
from my_dashboard.api.routers.e2e_reports import PENDING_MESSAGE
from my_dashboard.errors import NotFoundError
from my_dashboard.pubsub import CHANNEL_E2E_REPORT
from my_dashboard.services import e2e_reports

pytestmark = pytest.mark.unit

NOW = datetime(2025, 10, 2, 12, 0, tzinfo=UTC)


def _summary(status: str = "ready", **overrides) -> dict:
    row = {
        "id": 7,
        "date": date(2025, 10, 2),
        "status": status,
        "total_runs": 4,
        "passed_runs": 3,
        "failed_runs": 1,
        "success_rate": Decimal("0.75"),
        "created_at": NOW,
        "updated_at": NOW,
    }
    row.update(overrides)
    return row


def _detail(app_id: int = 1) -> dict:
    return {
        "id": 100 + app_id,
        "report_summary_id": 7,
        "app_id": app_id,
        "total_runs": 4,
        "passed_runs": 3,
        "failed_runs": 1,
        "success_rate": Decimal("0.75"),
        "last_run_status": "passed",
        "last_run_at": NOW,
        "last_failed_run_at": None,
        "created_at": NOW,
        "updated_at": NOW,
    }


def _app(app_id: int = 1) -> dict:
    return {
        "id": app_id,
        "name": f"project-{app_id}",
        "code": f"app{app_id}",
        "pipeline_url": None,
        "e2e_trigger_configuration": None,
        "watching": True,
        "created_at": NOW,
        "updated_at": NOW,
    }


@pytest.fixture
def summary_lookup(monkeypatch):
    lookup = AsyncMock(return_value=None)
    monkeypatch.setattr(e2e_reports, "get_summary_by_date", lookup)
    return lookup


class TestGetReport:
    async def test_missing_report_is_accepted_and_requested(
        self, client, summary_lookup, mock_pubsub
    ):
        response = await client.get("/api/e2e_run_report", params={"date": "2025-10-02"})

        assert response.status_code == 202
        data = response.json()["data"]
        assert data["summary"]["status"] == "pending"
        assert data["summary"]["date"] == "2025-10-02"
        assert data["details"] == []
        assert data["message"] == PENDING_MESSAGE

        mock_pubsub.publish.assert_awaited_once()
        channel, payload = mock_pubsub.publish.await_args.args
        assert channel == CHANNEL_E2E_REPORT
        assert payload["date"] == "2025-10-02"
        assert payload["requestId"]
        assert "force" not in payload

    async def test_pending_report_does_not_publish_again(
        self, client, summary_lookup, mock_pubsub
    ):
        summary_lookup.return_value = _summary("pending")
        response = await client.get("/api/e2e_run_report", params={"date": "2025-10-02"})
        assert response.status_code == 202
        mock_pubsub.publish.assert_not_awaited()

    async def test_force_publishes_with_force_flag(self, client, summary_lookup, mock_pubsub):
        summary_lookup.return_value = _summary("ready")
        response = await client.get(
            "/api/e2e_run_report", params={"date": "2025-10-02", "force": "true"}
        )
        assert response.status_code == 202
        _channel, payload = mock_pubsub.publish.await_args.args
        assert payload["force"] is True

    async def test_ready_report_with_enriched_details(
        self, client, summary_lookup, mock_pubsub, monkeypatch
    ):
        summary_lookup.return_value = _summary("ready")
        monkeypatch.setattr(e2e_reports, "list_details", AsyncMock(return_value=[_detail(1)]))
        monkeypatch.setattr(router_module, "list_apps_by_ids", AsyncMock(return_value=[_app(1)]))
        run = {"id": 3, "app_id": 1, "pipeline_id": "pipe-1", "created_at": NOW}
        monkeypatch.setattr(
            router_module, "runs_by_app_for_date", AsyncMock(return_value={1: [run]})
        )

        response = await client.get("/api/e2e_run_report", params={"date": "2025-10-02"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["summary"] == {
            "id": 7,
            "date": "2025-10-02",
            "status": "ready",
            "totalRuns": 4,
            "passedRuns": 3,
            "failedRuns": 1,
            "successRate": 0.75,
            "createdAt": "2025-10-02T12:00:00Z",
            "updatedAt": "2025-10-02T12:00:00Z",
        }
        assert data["message"] is None
        [detail] = data["details"]
        assert detail["appId"] == 1
        assert detail["app"]["code"] == "app1"
        assert detail["app"]["manualRuns"][0]["pipelineId"] == "pipe-1"
        mock_pubsub.publish.assert_not_awaited()

    async def test_details_can_be_excluded(self, client, summary_lookup, monkeypatch):
        summary_lookup.return_value = _summary("ready")
        list_details = AsyncMock(return_value=[_detail(1)])
        monkeypatch.setattr(e2e_reports, "list_details", list_details)

        response = await client.get(
            "/api/e2e_run_report",
            params={"date": "2025-10-02", "enrichments": '{"includeDetails": false}'},
        )

        assert response.status_code == 200
        assert response.json()["data"]["details"] is None
        list_details.assert_not_awaited()

    async def test_details_without_app_info(self, client, summary_lookup, monkeypatch):
        summary_lookup.return_value = _summary("ready")
        monkeypatch.setattr(e2e_reports, "list_details", AsyncMock(return_value=[_detail(2)]))

        response = await client.get(
            "/api/e2e_run_report",
            params={"date": "2025-10-02", "enrichments": '{"includeAppInfo": false}'},
        )

        [detail] = response.json()["data"]["details"]
        assert detail["app"] is None

    async def test_failed_report_is_returned_and_regenerated(
        self, client, summary_lookup, mock_pubsub, monkeypatch
    ):
        summary_lookup.return_value = _summary("failed", total_runs=0, success_rate=0)
        monkeypatch.setattr(e2e_reports, "list_details", AsyncMock(return_value=[]))
        monkeypatch.setattr(router_module, "list_apps_by_ids", AsyncMock(return_value=[]))
        monkeypatch.setattr(router_module, "runs_by_app_for_date", AsyncMock(return_value={}))

        response = await client.get("/api/e2e_run_report", params={"date": "2025-10-02"})

        assert response.status_code == 200
        assert response.json()["data"]["summary"]["status"] == "failed"
        mock_pubsub.publish.assert_awaited_once()

    @pytest.mark.parametrize("value", ["2025-13-01", "02-10-2025", "abc", "2025-10-2"])
    async def test_invalid_date_is_rejected(self, client, value):
        response = await client.get("/api/e2e_run_report", params={"date": value})
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["message"] == "Invalid date format. Expected YYYY-MM-DD"
        assert error["details"][0]["field"] == "date"

    async def test_invalid_enrichments_are_rejected(self, client):
        response = await client.get(
            "/api/e2e_run_report", params={"date": "2025-10-02", "enrichments": "{not json"}
        )
        assert response.status_code == 400
        assert (
            response.json()["error"]["message"]
            == "Invalid enrichments format. Expected JSON string"
        )


class TestRefreshAppStatus:
    async def test_returns_updated_detail(self, client, monkeypatch):
        refresh = AsyncMock(return_value=_detail(5))
        monkeypatch.setattr(e2e_reports, "refresh_app_status", refresh)

        response = await client.get("/api/e2e_run_report/7/5")

        assert response.status_code == 200
        assert response.json()["data"]["appId"] == 5
        assert refresh.await_args.args[2:] == (7, 5)

    async def test_unknown_summary_is_not_found(self, client, monkeypatch):
        monkeypatch.setattr(
            e2e_reports,
            "refresh_app_status",
            AsyncMock(side_effect=NotFoundError("Report summary", 99)),
        )
        response = await client.get("/api/e2e_run_report/99/1")
        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Report summary with id '99' not found"
