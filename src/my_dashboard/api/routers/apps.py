"""App endpoints."""

from __future__ import annotations

import asyncpg
from fastapi import APIRouter, Depends, Response

from my_dashboard.api.deps import get_circleci, get_pool
from my_dashboard.api.models import ApiResponse
from my_dashboard.api.models.app import App, AppCreate, AppDetail, AppUpdate
from my_dashboard.clients.circleci import CircleCIClient
from my_dashboard.services import apps

router = APIRouter(prefix="/api/apps", tags=["apps"])


@router.get("", response_model=ApiResponse[list[App]])
async def list_apps(pool: asyncpg.Pool = Depends(get_pool)) -> ApiResponse[list[App]]:
    rows = await apps.list_apps(pool)
    return ApiResponse[list[App]](data=[App.model_validate(row) for row in rows])


@router.post("", status_code=201, response_model=ApiResponse[App])
async def create_app(body: AppCreate, pool: asyncpg.Pool = Depends(get_pool)) -> ApiResponse[App]:
    row = await apps.create_app(pool, **body.model_dump())
    return ApiResponse[App](data=App.model_validate(row))


# Static paths are declared before /{app_id} so they are not parsed as ids.
@router.get("/watching", response_model=ApiResponse[list[App]])
async def list_watching_apps(pool: asyncpg.Pool = Depends(get_pool)) -> ApiResponse[list[App]]:
    rows = await apps.list_watching_apps(pool)
    return ApiResponse[list[App]](data=[App.model_validate(row) for row in rows])


@router.get("/code/{code}", response_model=ApiResponse[App])
async def get_app_by_code(code: str, pool: asyncpg.Pool = Depends(get_pool)) -> ApiResponse[App]:
    row = await apps.get_app_by_code(pool, code)
    return ApiResponse[App](data=App.model_validate(row))


@router.get("/{app_id}", response_model=ApiResponse[AppDetail])
async def get_app(
    app_id: int,
    pool: asyncpg.Pool = Depends(get_pool),
    circleci: CircleCIClient = Depends(get_circleci),
) -> ApiResponse[AppDetail]:
    """Return one app with today's manual run count and last run status."""
    row = await apps.get_app(pool, app_id, circleci=circleci)
    return ApiResponse[AppDetail](data=AppDetail.model_validate(row))


@router.put("/{app_id}", response_model=ApiResponse[App])
async def update_app(
    app_id: int, body: AppUpdate, pool: asyncpg.Pool = Depends(get_pool)
) -> ApiResponse[App]:
    row = await apps.update_app(pool, app_id, **body.model_dump(exclude_unset=True))
    return ApiResponse[App](data=App.model_validate(row))


@router.delete("/{app_id}", status_code=204)
async def delete_app(app_id: int, pool: asyncpg.Pool = Depends(get_pool)) -> Response:
    await apps.delete_app(pool, app_id)
    return Response(status_code=204)
