"""In-app notifications."""

from __future__ import annotations

import logging
from typing import Any

import asyncpg

from my_dashboard.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = ("info", "success", "warning", "error")

_COLUMNS = "id, title, message, link, type, is_read, created_at"


async def list_notifications(
    pool: asyncpg.Pool,
    *,
    is_read: bool | None = None,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[dict[str, Any]], int]:
    """Return one page of notifications (newest first) and the total count."""
    conditions: list[str] = []
    args: list[Any] = []
    if is_read is not None:
        args.append(is_read)
        conditions.append(f"is_read = ${len(args)}")
    where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

    total = await pool.fetchval(f"SELECT count(*) FROM notifications {where}", *args)
    rows = await pool.fetch(
        f"""
        SELECT {_COLUMNS}
        FROM notifications
        {where}
        ORDER BY created_at DESC, id DESC
        OFFSET ${len(args) + 1} LIMIT ${len(args) + 2}
        """,
        *args,
        offset,
        limit,
    )
    return [dict(row) for row in rows], int(total)


async def create_notification(
    pool: asyncpg.Pool,
    *,
    title: str,
    message: str,
    type: str = "info",
    link: str | None = None,
) -> dict[str, Any]:
    if not title or not title.strip():
        raise ValidationError("Notification title is required")
    if not message or not message.strip():
        raise ValidationError("Notification message is required")
    if type not in NOTIFICATION_TYPES:
        raise ValidationError(
            f"Invalid notification type '{type}'",
            details={"allowed": list(NOTIFICATION_TYPES)},
        )
    row = await pool.fetchrow(
        f"""
        INSERT INTO notifications (title, message, link, type)
        VALUES ($1, $2, $3, $4)
        RETURNING {_COLUMNS}
        """,
        title,
        message,
        link,
        type,
    )
    logger.info("Created %s notification %s: %s", type, row["id"], title)
    return dict(row)


async def mark_read(pool: asyncpg.Pool, notification_id: int) -> None:
    updated = await pool.fetchval(
        "UPDATE notifications SET is_read = true WHERE id = $1 RETURNING id",
        notification_id,
    )
    if updated is None:
        raise NotFoundError("Notification", notification_id)


async def delete_notification(pool: asyncpg.Pool, notification_id: int) -> None:
    deleted = await pool.fetchval(
        "DELETE FROM notifications WHERE id = $1 RETURNING id", notification_id
    )
    if deleted is None:
        raise NotFoundError("Notification", notification_id)


def _affected(status: str) -> int:
    # asyncpg returns command tags such as "UPDATE 3" / "DELETE 0".
    return int(status.rsplit(" ", 1)[-1])


async def mark_all_read(pool: asyncpg.Pool) -> int:
    """Mark every unread notification read in one statement; return the count."""
    async with pool.acquire() as conn, conn.transaction():
        status = await conn.execute("UPDATE notifications SET is_read = true WHERE is_read = false")
    count = _affected(status)
    logger.info("Marked %d notification(s) as read", count)
    return count


async def delete_all(pool: asyncpg.Pool) -> int:
    """Delete every notification in one statement; return the count."""
    async with pool.acquire() as conn, conn.transaction():
        status = await conn.execute("DELETE FROM notifications")
    count = _affected(status)
    logger.info("Deleted %d notification(s)", count)
    return count
