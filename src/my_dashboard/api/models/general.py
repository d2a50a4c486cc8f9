"""Small request/response models for device tokens, auth and health."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from my_dashboard.api.models import CamelModel


class DeviceTokenRequest(CamelModel):
    token: str = Field(min_length=10, max_length=500)


class DeviceToken(CamelModel):
    id: int
    token: str
    created_at: datetime | None = None
    last_used: datetime | None = None


class UnregisterResult(CamelModel):
    removed: bool


class HealthStatus(CamelModel):
    success: bool
    status: str
    service: str = "My Dashboard Server"
    db_connected: bool
    environment: str
    timestamp: str
    uptime: float
