"""Manual E2E run endpoints."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

import asyncpg
from fastapi import APIRouter, Body, Depends, Query

from my_dashboard.api.deps import get_circleci, get_pool
from my_dashboard.api.models import ApiResponse
from my_dashboard.api.models.e2e import ManualRun
from my_dashboard.clients.circleci import CircleCIClient
from my_dashboard.errors import ForeignKeyError, ValidationError
from my_dashboard.services import manual_runs

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/e2e_manual_runs", tags=["e2e"])


def coerce_app_id(value: Any) -> int | None:
    """Accept a positive int or a string of digits; anything else is invalid."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
        return parsed if parsed > 0 else None
    return None


@router.post("", status_code=201, response_model=ApiResponse[ManualRun])
async def create_manual_run(
    payload: dict[str, Any] | None = Body(None),
    pool: asyncpg.Pool = Depends(get_pool),
    circleci: CircleCIClient = Depends(get_circleci),
) -> ApiResponse[ManualRun]:
    body = payload or {}
    app_id = coerce_app_id(body.get("appId", body.get("app_id")))
    if app_id is None:
        raise ValidationError("Valid appId is required")

    try:
        run = await manual_runs.create_manual_run(pool, circleci, app_id)
    except ForeignKeyError as exc:
        raise ValidationError("Invalid appId: app does not exist") from exc
    return ApiResponse[ManualRun](data=ManualRun.model_validate(run))


@router.get("/app/{app_id}", response_model=ApiResponse[list[ManualRun]])
async def list_manual_runs(
    app_id: int,
    from_date: date | None = Query(None, alias="from", description="First day (inclusive)"),
    to_date: date | None = Query(None, alias="to", description="Last day (inclusive)"),
    pool: asyncpg.Pool = Depends(get_pool),
) -> ApiResponse[list[ManualRun]]:
    runs = await manual_runs.list_manual_runs(pool, app_id, from_date, to_date)
    return ApiResponse[list[ManualRun]](data=[ManualRun.model_validate(run) for run in runs])
