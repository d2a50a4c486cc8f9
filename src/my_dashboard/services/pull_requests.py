"""Tracked GitHub pull requests."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import asyncpg

from my_dashboard.clients.github import split_repository
from my_dashboard.errors import ConflictError, NotFoundError, ValidationError

if TYPE_CHECKING:
    from my_dashboard.clients.github import GitHubClient

logger = logging.getLogger(__name__)

_COLUMNS = "id, pull_request_number, repository, created_at"


async def list_pull_requests(pool: asyncpg.Pool) -> list[dict[str, Any]]:
    rows = await pool.fetch(
        f"SELECT {_COLUMNS} FROM pull_requests ORDER BY created_at DESC, id DESC"
    )
    return [dict(row) for row in rows]


async def get_pull_request(pool: asyncpg.Pool, pr_id: int) -> dict[str, Any]:
    row = await pool.fetchrow(f"SELECT {_COLUMNS} FROM pull_requests WHERE id = $1", pr_id)
    if row is None:
        raise NotFoundError("Pull request", pr_id)
    return dict(row)


async def add_pull_request(
    pool: asyncpg.Pool,
    *,
    pull_request_number: int,
    repository: str,
) -> dict[str, Any]:
    if pull_request_number <= 0:
        raise ValidationError("Pull request number must be a positive integer")
    split_repository(repository)
    try:
        row = await pool.fetchrow(
            f"""
            INSERT INTO pull_requests (pull_request_number, repository)
            VALUES ($1, $2)
            RETURNING {_COLUMNS}
            """,
            pull_request_number,
            repository,
        )
    except asyncpg.UniqueViolationError as exc:
        raise ConflictError(
            f"Pull request #{pull_request_number} in {repository} is already tracked"
        ) from exc
    logger.info("Tracking pull request %s#%s", repository, pull_request_number)
    return dict(row)


async def delete_pull_request(pool: asyncpg.Pool, pr_id: int) -> None:
    deleted = await pool.fetchval("DELETE FROM pull_requests WHERE id = $1 RETURNING id", pr_id)
    if deleted is None:
        raise NotFoundError("Pull request", pr_id)
    logger.info("Stopped tracking pull request %s", pr_id)


async def get_with_details(
    pool: asyncpg.Pool, github: GitHubClient, pr_id: int
) -> dict[str, Any]:
    """Return the live GitHub details for a tracked pull request."""
    pr = await get_pull_request(pool, pr_id)
    return await github.pull_request_details(pr["repository"], pr["pull_request_number"])
