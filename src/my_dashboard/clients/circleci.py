"""CircleCI v2 API client for manual E2E pipeline triggers."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from my_dashboard.clients.http import build_client, request_json
from my_dashboard.errors import ExternalServiceError, ServiceUnavailableError, ValidationError

logger = logging.getLogger(__name__)

# Workflow statuses that mean the pipeline has not finished yet.
IN_PROGRESS_STATUSES = frozenset({"running", "on_hold", "failing", "not_run"})


@dataclass
class Pipeline:
    id: str
    number: int | None
    state: str | None
    created_at: str | None


@dataclass
class Workflow:
    id: str
    pipeline_id: str
    name: str
    project_slug: str
    status: str
    pipeline_number: int
    created_at: str
    stopped_at: str | None = None

    @property
    def in_progress(self) -> bool:
        return self.status in IN_PROGRESS_STATUSES


class CircleCIClient:
    """Triggers E2E pipelines and reads back their latest workflow."""

    def __init__(
        self,
        token: str | None,
        base_url: str | None,
        project_path: str | None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token = token
        self._base_url = (base_url or "").rstrip("/")
        self._project_path = project_path
        self._client = build_client(
            base_url=self._base_url,
            headers={"circle-token": token or ""},
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return bool(self._token and self._base_url)

    def _require_config(self) -> None:
        if not self._token:
            raise ServiceUnavailableError("CIRCLE_CI_TOKEN is not configured")
        if not self._base_url:
            raise ServiceUnavailableError("CIRCLE_CI_BASE_URL is not configured")

    async def trigger_pipeline(self, config_json: str) -> Pipeline:
        """Trigger the project pipeline with *config_json* as the raw request body."""
        self._require_config()
        if not self._project_path:
            raise ServiceUnavailableError("CIRCLE_CI_PROJECT_PATH is not configured")
        try:
            json.loads(config_json)
        except json.JSONDecodeError as exc:
            raise ValidationError("Invalid JSON format in e2e trigger configuration") from exc

        logger.info("Triggering CircleCI E2E pipeline for %s", self._project_path)
        data = await request_json(
            self._client,
            "CircleCI",
            "POST",
            f"/v2/project/github/{self._project_path}/pipeline",
            content=config_json,
            headers={"Content-Type": "application/json"},
        )
        pipeline = Pipeline(
            id=str(data["id"]),
            number=data.get("number"),
            state=data.get("state"),
            created_at=data.get("created_at"),
        )
        logger.info(
            "CircleCI pipeline triggered (id=%s, number=%s)", pipeline.id, pipeline.number
        )
        return pipeline

    async def latest_workflow(self, pipeline_id: str) -> Workflow:
        """Return the first workflow of *pipeline_id*."""
        self._require_config()
        if not pipeline_id:
            raise ValidationError("Pipeline ID is required")

        data: dict[str, Any] = await request_json(
            self._client, "CircleCI", "GET", f"/v2/pipeline/{pipeline_id}/workflow"
        )
        items = data.get("items") or []
        if not items:
            raise ExternalServiceError("CircleCI", f"No workflow found for pipeline {pipeline_id}")
        item = items[0]
        return Workflow(
            id=item["id"],
            pipeline_id=item.get("pipeline_id", pipeline_id),
            name=item.get("name", ""),
            project_slug=item.get("project_slug", ""),
            status=item.get("status", "unknown"),
            pipeline_number=item.get("pipeline_number", 0),
            created_at=item.get("created_at", ""),
            stopped_at=item.get("stopped_at"),
        )

    def workflow_url(self, workflow: Workflow) -> str:
        return (
            f"{self._base_url}/pipelines/{workflow.project_slug}/"
            f"{workflow.pipeline_number}/workflows/{workflow.id}"
        )

    async def aclose(self) -> None:
        await self._client.aclose()
