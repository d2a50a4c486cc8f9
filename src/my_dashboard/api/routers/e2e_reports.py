"""E2E report endpoints.

``GET /api/e2e_run_report`` returns the stored report for a date.  When the
report is missing, failed or explicitly forced, a generation request is
published and, unless a finished report can be shown, the caller gets
``202 Accepted`` with a pending placeholder.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import UTC, date, datetime
from typing import Any

import asyncpg
import pydantic
from fastapi import APIRouter, Depends, Query, Response

from my_dashboard.api.deps import get_config, get_cypress, get_pool, get_pubsub
from my_dashboard.api.models import ApiResponse
from my_dashboard.api.models.e2e import E2EReport, ReportDetail, ReportEnrichments, ReportSummary
from my_dashboard.clients.cypress import CypressClient
from my_dashboard.config import DashboardConfig
from my_dashboard.errors import ValidationError
from my_dashboard.pubsub import PubSub
from my_dashboard.services import e2e_reports
from my_dashboard.services.apps import list_apps_by_ids
from my_dashboard.services.manual_runs import runs_by_app_for_date

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/e2e_run_report", tags=["e2e"])

PENDING_MESSAGE = "Report is being generated. Please check back later."

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_report_date(value: str | None) -> date:
    """Parse a ``YYYY-MM-DD`` query value; ``None`` means today (UTC)."""
    if value is None:
        return datetime.now(UTC).date()
    error = ValidationError(
        "Invalid date format. Expected YYYY-MM-DD",
        details=[
            {
                "field": "date",
                "message": "Date must be in YYYY-MM-DD format",
                "code": "INVALID_DATE_FORMAT",
                "value": value,
            }
        ],
    )
    if not _DATE_RE.match(value):
        raise error
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise error from None


def parse_enrichments(value: str | None) -> ReportEnrichments:
    """Parse the ``enrichments`` JSON object; non-object JSON keeps the defaults."""
    if value is None or not value.strip():
        return ReportEnrichments()
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        raise ValidationError("Invalid enrichments format. Expected JSON string") from None
    if not isinstance(parsed, dict):
        return ReportEnrichments()
    try:
        return ReportEnrichments.model_validate(parsed)
    except pydantic.ValidationError:
        raise ValidationError("Invalid enrichments format. Expected JSON string") from None


async def _enriched_details(
    pool: asyncpg.Pool, summary_id: int, day: date, enrichments: ReportEnrichments
) -> list[ReportDetail]:
    rows = await e2e_reports.list_details(pool, summary_id)
    if not enrichments.include_app_info:
        return [ReportDetail.model_validate(row) for row in rows]

    app_ids = [row["app_id"] for row in rows]
    apps = {app["id"]: app for app in await list_apps_by_ids(pool, app_ids)}
    runs: dict[int, list[dict[str, Any]]] = {}
    if enrichments.include_manual_runs:
        runs = await runs_by_app_for_date(pool, day, app_ids)

    details = []
    for row in rows:
        app = apps.get(row["app_id"])
        if app is None:
            continue
        app["manual_runs"] = runs.get(app["id"], []) if enrichments.include_manual_runs else None
        details.append(ReportDetail.model_validate({**row, "app": app}))
    return details


@router.get("", response_model=ApiResponse[E2EReport])
async def get_report(
    response: Response,
    report_date: str | None = Query(None, alias="date", description="Report date (YYYY-MM-DD)"),
    enrichments: str | None = Query(None, description="JSON object of enrichment flags"),
    force: bool = Query(False, description="Force regeneration"),
    pool: asyncpg.Pool = Depends(get_pool),
    pubsub: PubSub = Depends(get_pubsub),
) -> ApiResponse[E2EReport]:
    day = parse_report_date(report_date)
    options = parse_enrichments(enrichments)

    summary = await e2e_reports.get_summary_by_date(pool, day)
    if summary is None or summary["status"] == "failed" or force:
        await e2e_reports.publish_report_request(pubsub, day, force=force)

    if summary is None or summary["status"] == "pending" or force:
        response.status_code = 202
        return ApiResponse[E2EReport](
            data=E2EReport(
                summary=ReportSummary(date=day, status="pending"),
                details=[],
                message=PENDING_MESSAGE,
            )
        )

    details = None
    if options.include_details:
        details = await _enriched_details(pool, summary["id"], day, options)
    return ApiResponse[E2EReport](
        data=E2EReport(summary=ReportSummary.model_validate(summary), details=details)
    )


@router.get("/{summary_id}/{app_id}", response_model=ApiResponse[ReportDetail])
async def refresh_app_status(
    summary_id: int,
    app_id: int,
    pool: asyncpg.Pool = Depends(get_pool),
    cypress: CypressClient = Depends(get_cypress),
    config: DashboardConfig = Depends(get_config),
) -> ApiResponse[ReportDetail]:
    """Recompute one app's status in a report and return the updated detail."""
    detail = await e2e_reports.refresh_app_status(
        pool, cypress, summary_id, app_id, lookback_days=config.cypress.lookback_days
    )
    return ApiResponse[ReportDetail](data=ReportDetail.model_validate(detail))
