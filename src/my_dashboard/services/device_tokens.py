"""FCM device registration tokens."""

from __future__ import annotations

import logging
from typing import Any

import asyncpg

logger = logging.getLogger(__name__)


async def register(pool: asyncpg.Pool, token: str) -> dict[str, Any]:
    """Insert *token*, or refresh ``last_used`` if it is already registered."""
    row = await pool.fetchrow(
        """
        INSERT INTO device_tokens (token)
        VALUES ($1)
        ON CONFLICT (token) DO UPDATE SET last_used = now()
        RETURNING id, token, created_at, last_used
        """,
        token,
    )
    logger.info("Registered device token %s", row["id"])
    return dict(row)


async def unregister(pool: asyncpg.Pool, token: str) -> bool:
    deleted = await pool.fetchval("DELETE FROM device_tokens WHERE token = $1 RETURNING id", token)
    return deleted is not None


async def list_tokens(pool: asyncpg.Pool) -> list[str]:
    rows = await pool.fetch("SELECT token FROM device_tokens ORDER BY id")
    return [row["token"] for row in rows]


async def remove_tokens(pool: asyncpg.Pool, tokens: list[str]) -> int:
    if not tokens:
        return 0
    removed = await pool.fetchval(
        """
        WITH deleted AS (DELETE FROM device_tokens WHERE token = ANY($1::text[]) RETURNING id)
        SELECT count(*) FROM deleted
        """,
        tokens,
    )
    logger.info("Removed %d stale device token(s)", removed)
    return int(removed)
