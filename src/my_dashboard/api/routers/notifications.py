"""Notification endpoints: paginated list, create with push, and bulk actions."""

from __future__ import annotations

import logging

import asyncpg
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response

from my_dashboard.api.deps import get_fcm, get_pool
from my_dashboard.api.models import ApiResponse, PaginatedResponse, PaginationMeta
from my_dashboard.api.models.notification import (
    BulkDeleteResult,
    BulkUpdateResult,
    Notification,
    NotificationCreate,
)
from my_dashboard.clients.fcm import FcmSender
from my_dashboard.processors.notifications import push_notification
from my_dashboard.services import notifications

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=PaginatedResponse[Notification])
async def list_notifications(
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(50, ge=1, le=200, description="Max records to return"),
    is_read: bool | None = Query(None, description="Filter by read state"),
    pool: asyncpg.Pool = Depends(get_pool),
) -> PaginatedResponse[Notification]:
    """Return notifications newest first."""
    rows, total = await notifications.list_notifications(
        pool, is_read=is_read, offset=offset, limit=limit
    )
    return PaginatedResponse[Notification](
        data=[Notification.model_validate(row) for row in rows],
        meta=PaginationMeta(total=total, offset=offset, limit=limit),
    )


@router.post("", status_code=201, response_model=ApiResponse[Notification])
async def create_notification(
    body: NotificationCreate,
    background_tasks: BackgroundTasks,
    pool: asyncpg.Pool = Depends(get_pool),
    fcm: FcmSender = Depends(get_fcm),
) -> ApiResponse[Notification]:
    """Store a notification, then push it to every registered device."""
    row = await notifications.create_notification(pool, **body.model_dump())
    background_tasks.add_task(push_notification, pool, fcm, row)
    return ApiResponse[Notification](data=Notification.model_validate(row))


@router.patch("/read-all", response_model=ApiResponse[BulkUpdateResult])
async def mark_all_read(pool: asyncpg.Pool = Depends(get_pool)) -> ApiResponse[BulkUpdateResult]:
    updated = await notifications.mark_all_read(pool)
    return ApiResponse[BulkUpdateResult](data=BulkUpdateResult(updated=updated))


@router.patch("/{notification_id}/read", status_code=204)
async def mark_read(notification_id: int, pool: asyncpg.Pool = Depends(get_pool)) -> Response:
    await notifications.mark_read(pool, notification_id)
    return Response(status_code=204)


@router.delete("", response_model=ApiResponse[BulkDeleteResult])
async def delete_all(pool: asyncpg.Pool = Depends(get_pool)) -> ApiResponse[BulkDeleteResult]:
    deleted = await notifications.delete_all(pool)
    return ApiResponse[BulkDeleteResult](data=BulkDeleteResult(deleted=deleted))


@router.delete("/{notification_id}", status_code=204)
async def delete_notification(
    notification_id: int, pool: asyncpg.Pool = Depends(get_pool)
) -> Response:
    await notifications.delete_notification(pool, notification_id)
    return Response(status_code=204)
