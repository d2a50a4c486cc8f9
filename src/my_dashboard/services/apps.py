"""Monitored applications."""

from __future__ import annotations

import json
import logging
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, Any

import asyncpg

from my_dashboard.errors import ConflictError, ExternalServiceError, NotFoundError, ValidationError
from my_dashboard.services.sql import build_update

if TYPE_CHECKING:
    from my_dashboard.clients.circleci import CircleCIClient

logger = logging.getLogger(__name__)

_APP_COLUMNS = """
    id, name, code, pipeline_url, e2e_trigger_configuration, watching,
    created_at, updated_at
"""
_UPDATABLE = {"name", "code", "pipeline_url", "e2e_trigger_configuration", "watching"}


def validate_trigger_configuration(value: str | None) -> str | None:
    """Return *value* unchanged if it is valid JSON text; empty becomes ``None``."""
    if value is None or not value.strip():
        return None
    try:
        json.loads(value)
    except json.JSONDecodeError as exc:
        raise ValidationError(
            "e2eTriggerConfiguration must be valid JSON",
            details={"error": str(exc)},
        ) from exc
    return value


async def list_apps(pool: asyncpg.Pool) -> list[dict[str, Any]]:
    rows = await pool.fetch(f"SELECT {_APP_COLUMNS} FROM apps ORDER BY name")
    return [dict(row) for row in rows]


async def list_watching_apps(pool: asyncpg.Pool) -> list[dict[str, Any]]:
    rows = await pool.fetch(f"SELECT {_APP_COLUMNS} FROM apps WHERE watching = true ORDER BY name")
    return [dict(row) for row in rows]


async def list_apps_by_ids(pool: asyncpg.Pool, app_ids: list[int]) -> list[dict[str, Any]]:
    rows = await pool.fetch(
        f"SELECT {_APP_COLUMNS} FROM apps WHERE id = ANY($1::int[]) ORDER BY name",
        app_ids,
    )
    return [dict(row) for row in rows]


async def find_app(pool: asyncpg.Pool, app_id: int) -> dict[str, Any] | None:
    row = await pool.fetchrow(f"SELECT {_APP_COLUMNS} FROM apps WHERE id = $1", app_id)
    return dict(row) if row is not None else None


async def get_app(
    pool: asyncpg.Pool,
    app_id: int,
    *,
    circleci: CircleCIClient | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """Return one app, enriched with today's manual E2E runs.

    ``e2e_runs_quantity`` counts today's manual runs; ``last_run`` describes
    the CircleCI workflow of the newest one.  The workflow lookup is skipped
    when CircleCI is not configured.
    """
    app = await find_app(pool, app_id)
    if app is None:
        raise NotFoundError("App", app_id)

    day = today or datetime.now(UTC).date()
    runs = await pool.fetch(
        """
        SELECT id, app_id, pipeline_id, created_at
        FROM e2e_manual_runs
        WHERE app_id = $1 AND created_at::date = $2
        ORDER BY created_at DESC, id DESC
        """,
        app_id,
        day,
    )
    app["e2e_runs_quantity"] = len(runs)
    app["last_run"] = None

    if runs and circleci is not None and circleci.configured:
        newest = runs[0]
        try:
            workflow = await circleci.latest_workflow(newest["pipeline_id"])
        except ExternalServiceError:
            logger.warning(
                "Could not fetch CircleCI workflow for app %s run %s",
                app_id,
                newest["id"],
                exc_info=True,
            )
        else:
            app["last_run"] = {
                "id": newest["id"],
                "status": workflow.status,
                "url": circleci.workflow_url(workflow),
                "pipeline_id": newest["pipeline_id"],
                "created_at": newest["created_at"],
            }
    return app


async def get_app_by_code(pool: asyncpg.Pool, code: str) -> dict[str, Any]:
    row = await pool.fetchrow(f"SELECT {_APP_COLUMNS} FROM apps WHERE code = $1", code)
    if row is None:
        raise NotFoundError("App", code)
    return dict(row)


async def create_app(
    pool: asyncpg.Pool,
    *,
    name: str,
    code: str,
    pipeline_url: str | None = None,
    e2e_trigger_configuration: str | None = None,
    watching: bool = False,
) -> dict[str, Any]:
    if not name or not name.strip():
        raise ValidationError("App name is required")
    if not code or not code.strip():
        raise ValidationError("App code is required")
    config = validate_trigger_configuration(e2e_trigger_configuration)

    try:
        row = await pool.fetchrow(
            f"""
            INSERT INTO apps (name, code, pipeline_url, e2e_trigger_configuration, watching)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING {_APP_COLUMNS}
            """,
            name.strip(),
            code.strip(),
            pipeline_url,
            config,
            watching,
        )
    except asyncpg.UniqueViolationError as exc:
        raise ConflictError("App code must be unique") from exc
    logger.info("Created app %s (%s)", row["code"], row["id"])
    return dict(row)


async def update_app(pool: asyncpg.Pool, app_id: int, **fields: Any) -> dict[str, Any]:
    """Apply a partial update; only the keys present in *fields* change."""
    if "e2e_trigger_configuration" in fields:
        fields["e2e_trigger_configuration"] = validate_trigger_configuration(
            fields["e2e_trigger_configuration"]
        )
    for key in ("name", "code"):
        if key in fields and (fields[key] is None or not str(fields[key]).strip()):
            raise ValidationError(f"App {key} cannot be empty")
    if "watching" in fields and fields["watching"] is None:
        raise ValidationError("watching must be true or false")

    if not fields:
        app = await find_app(pool, app_id)
        if app is None:
            raise NotFoundError("App", app_id)
        return app

    query, params = build_update("apps", fields, _UPDATABLE)
    try:
        row = await pool.fetchrow(query, app_id, *params)
    except asyncpg.UniqueViolationError as exc:
        raise ConflictError("App code must be unique") from exc
    if row is None:
        raise NotFoundError("App", app_id)
    logger.info("Updated app %s: %s", app_id, list(fields))
    return dict(row)


async def delete_app(pool: asyncpg.Pool, app_id: int) -> None:
    deleted = await pool.fetchval("DELETE FROM apps WHERE id = $1 RETURNING id", app_id)
    if deleted is None:
        raise NotFoundError("App", app_id)
    logger.info("Deleted app %s", app_id)
