"""To-do list items."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import asyncpg

from my_dashboard.errors import NotFoundError, ValidationError
from my_dashboard.services.sql import build_update

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 255
LINK_MAX_LENGTH = 500

_TODO_COLUMNS = "id, title, description, link, due_date, is_completed, created_at, updated_at"
_UPDATABLE = {"title", "description", "link", "due_date", "is_completed"}


def _validate_title(title: str | None) -> str:
    if title is None or not title.strip():
        raise ValidationError("Title is required")
    title = title.strip()
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(f"Title must be at most {TITLE_MAX_LENGTH} characters")
    return title


def _validate_link(link: str | None) -> str | None:
    if link is not None and len(link) > LINK_MAX_LENGTH:
        raise ValidationError(f"Link must be at most {LINK_MAX_LENGTH} characters")
    return link


async def list_todos(pool: asyncpg.Pool) -> list[dict[str, Any]]:
    rows = await pool.fetch(
        f"SELECT {_TODO_COLUMNS} FROM todos ORDER BY due_date ASC NULLS LAST, id ASC"
    )
    return [dict(row) for row in rows]


async def get_todo(pool: asyncpg.Pool, todo_id: int) -> dict[str, Any]:
    row = await pool.fetchrow(f"SELECT {_TODO_COLUMNS} FROM todos WHERE id = $1", todo_id)
    if row is None:
        raise NotFoundError("To-do", todo_id)
    return dict(row)


async def create_todo(
    pool: asyncpg.Pool,
    *,
    title: str,
    description: str | None = None,
    link: str | None = None,
    due_date: datetime | None = None,
    is_completed: bool = False,
) -> dict[str, Any]:
    row = await pool.fetchrow(
        f"""
        INSERT INTO todos (title, description, link, due_date, is_completed)
        VALUES ($1, $2, $3, $4, $5)
        RETURNING {_TODO_COLUMNS}
        """,
        _validate_title(title),
        description,
        _validate_link(link),
        due_date,
        is_completed,
    )
    logger.info("Created to-do %s", row["id"])
    return dict(row)


async def update_todo(pool: asyncpg.Pool, todo_id: int, **fields: Any) -> dict[str, Any]:
    if "title" in fields:
        fields["title"] = _validate_title(fields["title"])
    if "link" in fields:
        _validate_link(fields["link"])
    if "is_completed" in fields and fields["is_completed"] is None:
        raise ValidationError("isCompleted must be true or false")
    if not fields:
        return await get_todo(pool, todo_id)

    query, params = build_update("todos", fields, _UPDATABLE)
    row = await pool.fetchrow(query, todo_id, *params)
    if row is None:
        raise NotFoundError("To-do", todo_id)
    return dict(row)


async def delete_todo(pool: asyncpg.Pool, todo_id: int) -> None:
    deleted = await pool.fetchval("DELETE FROM todos WHERE id = $1 RETURNING id", todo_id)
    if deleted is None:
        raise NotFoundError("To-do", todo_id)
