"""Pydantic models for the notifications API."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from my_dashboard.api.models import CamelModel

NotificationType = Literal["info", "success", "warning", "error"]


class Notification(CamelModel):
    """Mirrors the ``notifications`` table."""

    id: int
    title: str
    message: str
    link: str | None = None
    type: NotificationType
    is_read: bool = False
    created_at: datetime


class NotificationCreate(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    message: str = Field(min_length=1)
    type: NotificationType = "info"
    link: str | None = Field(default=None, max_length=500)


class BulkUpdateResult(CamelModel):
    updated: int


class BulkDeleteResult(CamelModel):
    deleted: int
