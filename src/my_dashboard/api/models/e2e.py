"""Pydantic models for E2E reports and manual runs."""

from __future__ import annotations

import datetime as dt
from typing import Literal

from my_dashboard.api.models import CamelModel
from my_dashboard.api.models.app import App

ReportStatus = Literal["pending", "ready", "failed"]


class ManualRun(CamelModel):
    id: int
    app_id: int
    pipeline_id: str
    created_at: dt.datetime


class ReportSummary(CamelModel):
    """Per-date totals; ``id`` is absent while the report is still pending."""

    id: int | None = None
    date: dt.date
    status: ReportStatus
    total_runs: int = 0
    passed_runs: int = 0
    failed_runs: int = 0
    success_rate: float = 0.0
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None


class ReportApp(App):
    manual_runs: list[ManualRun] | None = None


class ReportDetail(CamelModel):
    id: int
    report_summary_id: int
    app_id: int
    total_runs: int
    passed_runs: int
    failed_runs: int
    success_rate: float
    last_run_status: str
    last_run_at: dt.datetime
    last_failed_run_at: dt.datetime | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None
    app: ReportApp | None = None


class E2EReport(CamelModel):
    """Body of ``GET /api/e2e_run_report``.

    ``details`` is ``None`` when the caller disabled ``includeDetails``.
    """

    summary: ReportSummary
    details: list[ReportDetail] | None = None
    message: str | None = None


class ReportEnrichments(CamelModel):
    include_details: bool = True
    include_app_info: bool = True
    include_manual_runs: bool = True
