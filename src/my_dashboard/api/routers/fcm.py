"""Device token registration for push notifications."""

from __future__ import annotations

import asyncpg
from fastapi import APIRouter, Depends

from my_dashboard.api.deps import get_pool
from my_dashboard.api.models import ApiResponse
from my_dashboard.api.models.general import DeviceToken, DeviceTokenRequest, UnregisterResult
from my_dashboard.services import device_tokens

router = APIRouter(prefix="/api/fcm", tags=["fcm"])


@router.post("/register-token", response_model=ApiResponse[DeviceToken])
async def register_token(
    body: DeviceTokenRequest, pool: asyncpg.Pool = Depends(get_pool)
) -> ApiResponse[DeviceToken]:
    row = await device_tokens.register(pool, body.token.strip())
    return ApiResponse[DeviceToken](data=DeviceToken.model_validate(row))


@router.post("/unregister-token", response_model=ApiResponse[UnregisterResult])
async def unregister_token(
    body: DeviceTokenRequest, pool: asyncpg.Pool = Depends(get_pool)
) -> ApiResponse[UnregisterResult]:
    removed = await device_tokens.unregister(pool, body.token.strip())
    return ApiResponse[UnregisterResult](data=UnregisterResult(removed=removed))
