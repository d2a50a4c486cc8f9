"""API key validation endpoint (exempt from the API key middleware).

Responses use a flat ``{"valid": bool, "message"|"error": str}`` body rather
than the standard envelope so login screens can consume it directly.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse

from my_dashboard.api.deps import get_config, get_guard
from my_dashboard.config import DashboardConfig
from my_dashboard.services.auth import BruteForceGuard, verify_api_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _client_id(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/validate")
async def validate_api_key(
    request: Request,
    payload: Any = Body(None),
    config: DashboardConfig = Depends(get_config),
    guard: BruteForceGuard = Depends(get_guard),
) -> JSONResponse:
    client_id = _client_id(request)

    remaining = guard.is_blocked(client_id)
    if remaining is not None:
        minutes = math.ceil(remaining / 60)
        return JSONResponse(
            status_code=429,
            content={
                "valid": False,
                "error": f"Too many failed attempts. Try again in {minutes} minutes.",
                "retryAfter": minutes * 60,
            },
        )

    api_key = payload.get("apiKey") if isinstance(payload, dict) else None
    if not isinstance(api_key, str) or not api_key:
        guard.record_failure(client_id)
        return JSONResponse(
            status_code=400,
            content={"valid": False, "error": "API key is required and must be a string"},
        )
    if not api_key.strip():
        guard.record_failure(client_id)
        return JSONResponse(
            status_code=400, content={"valid": False, "error": "API key cannot be empty"}
        )

    secret = config.auth.api_key
    if not secret:
        logger.error("API_SECURITY_KEY is not configured")
        return JSONResponse(
            status_code=500, content={"valid": False, "error": "Server configuration error"}
        )

    if verify_api_key(api_key, secret):
        guard.clear(client_id)
        return JSONResponse(status_code=200, content={"valid": True, "message": "API key is valid"})

    guard.record_failure(client_id)
    logger.warning("Failed API key validation attempt from %s", client_id)
    return JSONResponse(status_code=401, content={"valid": False, "error": "Invalid API key"})
