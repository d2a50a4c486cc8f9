"""Manually triggered E2E runs."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from typing import TYPE_CHECKING, Any

import asyncpg

from my_dashboard.errors import (
    ConflictError,
    ExternalServiceError,
    ForeignKeyError,
    UnprocessableEntityError,
)
from my_dashboard.services.apps import find_app

if TYPE_CHECKING:
    from my_dashboard.clients.circleci import CircleCIClient

logger = logging.getLogger(__name__)

_COLUMNS = "id, app_id, pipeline_id, created_at"


async def newest_run(pool: asyncpg.Pool, app_id: int) -> dict[str, Any] | None:
    row = await pool.fetchrow(
        f"""
        SELECT {_COLUMNS} FROM e2e_manual_runs
        WHERE app_id = $1
        ORDER BY created_at DESC, id DESC
        LIMIT 1
        """,
        app_id,
    )
    return dict(row) if row is not None else None


async def create_manual_run(
    pool: asyncpg.Pool, circleci: CircleCIClient, app_id: int
) -> dict[str, Any]:
    """Trigger a CircleCI E2E pipeline for an app and record the run.

    Raises:
        ForeignKeyError: the app does not exist.
        UnprocessableEntityError: the app has no trigger configuration.
        ConflictError: the app's newest run is still in progress.
    """
    app = await find_app(pool, app_id)
    if app is None:
        raise ForeignKeyError(f"App {app_id} does not exist")
    config = app["e2e_trigger_configuration"]
    if not config:
        raise UnprocessableEntityError(
            f"App '{app['code']}' has no e2e trigger configuration"
        )

    previous = await newest_run(pool, app_id)
    if previous is not None:
        try:
            workflow = await circleci.latest_workflow(previous["pipeline_id"])
        except ExternalServiceError:
            # No readable workflow for the previous run; treat it as finished.
            logger.warning(
                "Could not read workflow for run %s; allowing a new run",
                previous["id"],
                exc_info=True,
            )
        else:
            if workflow.in_progress:
                raise ConflictError(
                    "A manual run is already in progress for this app",
                    details={"runId": previous["id"], "status": workflow.status},
                )

    pipeline = await circleci.trigger_pipeline(config)
    try:
        row = await pool.fetchrow(
            f"""
            INSERT INTO e2e_manual_runs (app_id, pipeline_id)
            VALUES ($1, $2)
            RETURNING {_COLUMNS}
            """,
            app_id,
            pipeline.id,
        )
    except asyncpg.ForeignKeyViolationError as exc:
        raise ForeignKeyError(f"App {app_id} does not exist") from exc
    logger.info("Recorded manual run %s for app %s (pipeline %s)", row["id"], app_id, pipeline.id)
    return dict(row)


async def list_manual_runs(
    pool: asyncpg.Pool,
    app_id: int,
    from_date: date | None = None,
    to_date: date | None = None,
) -> list[dict[str, Any]]:
    """Runs for *app_id*, newest first, optionally bounded by calendar dates."""
    conditions = ["app_id = $1"]
    args: list[Any] = [app_id]
    if from_date is not None:
        args.append(from_date)
        conditions.append(f"created_at::date >= ${len(args)}")
    if to_date is not None:
        args.append(to_date)
        conditions.append(f"created_at::date <= ${len(args)}")

    rows = await pool.fetch(
        f"""
        SELECT {_COLUMNS} FROM e2e_manual_runs
        WHERE {' AND '.join(conditions)}
        ORDER BY created_at DESC, id DESC
        """,
        *args,
    )
    return [dict(row) for row in rows]


async def runs_by_app_for_date(
    pool: asyncpg.Pool, day: date, app_ids: list[int]
) -> dict[int, list[dict[str, Any]]]:
    """Group the manual runs of *day* by app id, newest first."""
    if not app_ids:
        return {}
    rows = await pool.fetch(
        f"""
        SELECT {_COLUMNS} FROM e2e_manual_runs
        WHERE app_id = ANY($1::int[]) AND created_at::date = $2
        ORDER BY created_at DESC, id DESC
        """,
        app_ids,
        day,
    )
    grouped: dict[int, list[dict[str, Any]]] = defaultdict(list)
    for row in rows:
        grouped[row["app_id"]].append(dict(row))
    return dict(grouped)
