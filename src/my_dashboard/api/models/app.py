"""Pydantic models for the apps API."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from my_dashboard.api.models import CamelModel


class App(CamelModel):
    """A monitored application; mirrors the ``apps`` table."""

    id: int
    name: str
    code: str
    pipeline_url: str | None = None
    e2e_trigger_configuration: str | None = None
    watching: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class LastRun(CamelModel):
    """CircleCI workflow state of an app's newest manual run today."""

    id: int
    status: str
    url: str
    pipeline_id: str
    created_at: datetime


class AppDetail(App):
    e2e_runs_quantity: int = 0
    last_run: LastRun | None = None


class AppCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    code: str = Field(min_length=1, max_length=100)
    pipeline_url: str | None = None
    e2e_trigger_configuration: str | None = None
    watching: bool = False


class AppUpdate(CamelModel):
    """Partial update; only fields present in the request body are applied."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    code: str | None = Field(default=None, min_length=1, max_length=100)
    pipeline_url: str | None = None
    e2e_trigger_configuration: str | None = None
    watching: bool | None = None
