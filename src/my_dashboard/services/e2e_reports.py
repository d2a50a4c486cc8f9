"""Daily E2E report aggregation.

A report is one ``e2e_report_summaries`` row per calendar date plus one
``e2e_report_details`` row per watched app.  The summary counters always
equal the sum of its details: both are written in the same transaction,
under a per-date advisory lock so concurrent recomputations serialize.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import asyncpg
from opentelemetry import trace

from my_dashboard.core.metrics import report_generation_seconds, report_generations_total
from my_dashboard.errors import NotFoundError
from my_dashboard.pubsub import CHANNEL_E2E_REPORT
from my_dashboard.services.apps import list_apps_by_ids, list_watching_apps

if TYPE_CHECKING:
    from my_dashboard.clients.cypress import CypressClient
    from my_dashboard.pubsub import PubSub

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK_DAYS = 14
NO_TESTS = "noTests"

_SUMMARY_COLUMNS = """
    id, date, status, total_runs, passed_runs, failed_runs, success_rate,
    created_at, updated_at
"""
_DETAIL_COLUMNS = """
    id, report_summary_id, app_id, total_runs, passed_runs, failed_runs,
    success_rate, last_run_status, last_run_at, last_failed_run_at,
    created_at, updated_at
"""

# Recomputes a summary's counters from its details in one statement.
_RESUM_SUMMARY = """
    UPDATE e2e_report_summaries AS s
    SET total_runs = agg.total_runs,
        passed_runs = agg.passed_runs,
        failed_runs = agg.failed_runs,
        success_rate = CASE
            WHEN agg.total_runs > 0
            THEN round(agg.passed_runs::numeric / agg.total_runs, 4)
            ELSE 0
        END,
        status = $2,
        updated_at = now()
    FROM (
        SELECT COALESCE(sum(total_runs), 0)::int AS total_runs,
               COALESCE(sum(passed_runs), 0)::int AS passed_runs,
               COALESCE(sum(failed_runs), 0)::int AS failed_runs
        FROM e2e_report_details
        WHERE report_summary_id = $1
    ) AS agg
    WHERE s.id = $1
    RETURNING s.id, s.date, s.status, s.total_runs, s.passed_runs, s.failed_runs,
              s.success_rate, s.created_at, s.updated_at
"""


@dataclass
class AppReport:
    """Aggregated Cypress results for one app over the lookback window."""

    app_id: int
    total_runs: int = 0
    passed_runs: int = 0
    failed_runs: int = 0
    success_rate: float = 0.0
    last_run_status: str = NO_TESTS
    last_run_at: datetime | None = None
    last_failed_run_at: datetime | None = None


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        logger.warning("Unparseable Cypress timestamp: %r", value)
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _run_number(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def run_status(rows: list[dict[str, Any]]) -> str:
    """A run passes when every spec that actually ran passed.

    Specs reporting ``noTests`` are ignored, so a run made only of
    ``noTests`` specs counts as passed.
    """
    statuses = [row.get("status") for row in rows if row.get("status") != NO_TESTS]
    return "passed" if all(status == "passed" for status in statuses) else "failed"


def build_app_report(
    app_id: int, rows: list[dict[str, Any]], *, now: datetime | None = None
) -> AppReport:
    """Aggregate one app's Cypress spec rows into per-run counters."""
    runs: dict[int, list[dict[str, Any]]] = defaultdict(list)
    for row in rows:
        number = _run_number(row.get("run_number"))
        if number is None:
            continue
        runs[number].append(row)

    report = AppReport(app_id=app_id, last_run_at=now or datetime.now(UTC))
    if not runs:
        return report

    ordered = sorted(runs.items(), key=lambda item: item[0], reverse=True)
    for index, (_number, run_rows) in enumerate(ordered):
        status = run_status(run_rows)
        created_at = _parse_timestamp(run_rows[0].get("created_at"))
        if index == 0:
            report.last_run_status = status
            if created_at is not None:
                report.last_run_at = created_at
        if status == "passed":
            report.passed_runs += 1
        else:
            report.failed_runs += 1
            if report.last_failed_run_at is None:
                report.last_failed_run_at = created_at

    report.total_runs = len(ordered)
    report.success_rate = round(report.passed_runs / report.total_runs, 4)
    return report


async def collect_app_reports(
    pool: asyncpg.Pool,
    cypress: CypressClient,
    day: date,
    app_ids: list[int] | None = None,
    *,
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    now: datetime | None = None,
) -> list[AppReport]:
    """Fetch Cypress results for the watched apps (or *app_ids*) and aggregate them.

    Every requested app gets a report, even when Cypress has no rows for it.
    """
    apps = await (list_apps_by_ids(pool, app_ids) if app_ids else list_watching_apps(pool))
    if not apps:
        logger.info("No apps to report on for %s", day)
        return []

    rows = await cypress.fetch_spec_details(
        [app["name"] for app in apps],
        day - timedelta(days=lookback_days),
        day,
    )
    by_project: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for row in rows:
        by_project[row.get("project_name")].append(row)

    return [build_app_report(app["id"], by_project.get(app["name"], []), now=now) for app in apps]


def _lock_key(day: date) -> str:
    return f"e2e_report:{day.isoformat()}"


async def _lock_date(conn: asyncpg.Connection, day: date) -> None:
    await conn.execute("SELECT pg_advisory_xact_lock(hashtext($1))", _lock_key(day))


async def get_summary_by_date(pool: asyncpg.Pool, day: date) -> dict[str, Any] | None:
    row = await pool.fetchrow(
        f"SELECT {_SUMMARY_COLUMNS} FROM e2e_report_summaries WHERE date = $1", day
    )
    return dict(row) if row is not None else None


async def get_summary(pool: asyncpg.Pool, summary_id: int) -> dict[str, Any] | None:
    row = await pool.fetchrow(
        f"SELECT {_SUMMARY_COLUMNS} FROM e2e_report_summaries WHERE id = $1", summary_id
    )
    return dict(row) if row is not None else None


async def list_details(pool: asyncpg.Pool, summary_id: int) -> list[dict[str, Any]]:
    rows = await pool.fetch(
        f"""
        SELECT {_DETAIL_COLUMNS} FROM e2e_report_details
        WHERE report_summary_id = $1
        ORDER BY app_id
        """,
        summary_id,
    )
    return [dict(row) for row in rows]


async def _ensure_summary(pool: asyncpg.Pool, day: date) -> dict[str, Any]:
    await pool.execute(
        "INSERT INTO e2e_report_summaries (date) VALUES ($1) ON CONFLICT (date) DO NOTHING",
        day,
    )
    summary = await get_summary_by_date(pool, day)
    if summary is None:
        raise NotFoundError("Report summary", day.isoformat())
    return summary


async def _mark_failed(pool: asyncpg.Pool, summary_id: int) -> None:
    try:
        await pool.execute(
            """
            UPDATE e2e_report_summaries SET status = 'failed', updated_at = now()
            WHERE id = $1 AND status <> 'ready'
            """,
            summary_id,
        )
    except (asyncpg.PostgresError, OSError):
        logger.exception("Could not mark report summary %s as failed", summary_id)


async def generate_report(
    pool: asyncpg.Pool,
    cypress: CypressClient,
    day: date,
    *,
    force: bool = False,
    request_id: str | None = None,
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
) -> dict[str, Any] | None:
    """Compute (or recompute with *force*) the report for *day*.

    Returns the summary row, or ``None`` when generation failed.  Once the
    summary row exists, failures are logged and leave it in ``failed`` state
    instead of raising.
    """
    tracer = trace.get_tracer("my_dashboard")
    with tracer.start_as_current_span("e2e_report.generate") as span:
        span.set_attribute("date", day.isoformat())
        span.set_attribute("force", force)
        if request_id:
            span.set_attribute("request_id", request_id)

        summary = await _ensure_summary(pool, day)
        if summary["status"] == "ready" and not force:
            logger.info("Report for %s already ready; skipping", day)
            report_generations_total.labels(status="skipped").inc()
            return summary

        try:
            with report_generation_seconds.time():
                # Cypress is queried before any lock is taken.
                reports = await collect_app_reports(
                    pool, cypress, day, lookback_days=lookback_days
                )
                async with pool.acquire() as conn, conn.transaction():
                    await _lock_date(conn, day)
                    locked = await conn.fetchrow(
                        f"""
                        SELECT {_SUMMARY_COLUMNS} FROM e2e_report_summaries
                        WHERE id = $1 FOR UPDATE
                        """,
                        summary["id"],
                    )
                    if locked is None:
                        raise NotFoundError("Report summary", summary["id"])
                    if locked["status"] == "ready" and not force:
                        logger.info("Report for %s finished concurrently; skipping", day)
                        report_generations_total.labels(status="skipped").inc()
                        return dict(locked)

                    await conn.execute(
                        "DELETE FROM e2e_report_details WHERE report_summary_id = $1",
                        summary["id"],
                    )
                    await conn.executemany(
                        """
                        INSERT INTO e2e_report_details (
                            report_summary_id, app_id, total_runs, passed_runs,
                            failed_runs, success_rate, last_run_status,
                            last_run_at, last_failed_run_at
                        )
                        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                        """,
                        [
                            (
                                summary["id"],
                                r.app_id,
                                r.total_runs,
                                r.passed_runs,
                                r.failed_runs,
                                Decimal(str(r.success_rate)),
                                r.last_run_status,
                                r.last_run_at,
                                r.last_failed_run_at,
                            )
                            for r in reports
                        ],
                    )
                    row = await conn.fetchrow(_RESUM_SUMMARY, summary["id"], "ready")
        except Exception:
            logger.exception("E2E report generation failed for %s", day)
            report_generations_total.labels(status="failed").inc()
            span.set_attribute("failed", True)
            await _mark_failed(pool, summary["id"])
            return None

        report_generations_total.labels(status="ready").inc()
        span.set_attribute("apps", len(reports))
        logger.info(
            "E2E report for %s ready: %d app(s), %d run(s), success rate %s",
            day,
            len(reports),
            row["total_runs"],
            row["success_rate"],
        )
        return dict(row)


async def refresh_app_status(
    pool: asyncpg.Pool,
    cypress: CypressClient,
    summary_id: int,
    app_id: int,
    *,
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
) -> dict[str, Any]:
    """Recompute one app's detail row and re-sum its summary."""
    summary = await get_summary(pool, summary_id)
    if summary is None:
        raise NotFoundError("Report summary", summary_id)
    exists = await pool.fetchval(
        "SELECT id FROM e2e_report_details WHERE report_summary_id = $1 AND app_id = $2",
        summary_id,
        app_id,
    )
    if exists is None:
        raise NotFoundError("Report detail", f"{summary_id}/{app_id}")

    day: date = summary["date"]
    reports = await collect_app_reports(
        pool, cypress, day, [app_id], lookback_days=lookback_days
    )
    if not reports:
        raise NotFoundError("App", app_id)
    report = reports[0]

    async with pool.acquire() as conn, conn.transaction():
        await _lock_date(conn, day)
        await conn.execute(
            "SELECT id FROM e2e_report_summaries WHERE id = $1 FOR UPDATE", summary_id
        )
        row = await conn.fetchrow(
            f"""
            UPDATE e2e_report_details
            SET total_runs = $3, passed_runs = $4, failed_runs = $5,
                success_rate = $6, last_run_status = $7, last_run_at = $8,
                last_failed_run_at = $9, updated_at = now()
            WHERE report_summary_id = $1 AND app_id = $2
            RETURNING {_DETAIL_COLUMNS}
            """,
            summary_id,
            app_id,
            report.total_runs,
            report.passed_runs,
            report.failed_runs,
            Decimal(str(report.success_rate)),
            report.last_run_status,
            report.last_run_at,
            report.last_failed_run_at,
        )
        if row is None:
            raise NotFoundError("Report detail", f"{summary_id}/{app_id}")
        await conn.fetchrow(_RESUM_SUMMARY, summary_id, summary["status"])

    logger.info("Refreshed E2E status for app %s in report %s", app_id, summary_id)
    return dict(row)


async def publish_report_request(
    pubsub: PubSub,
    day: date,
    *,
    request_id: str | None = None,
    force: bool = False,
) -> str:
    """Ask the report processor to (re)generate the report for *day*."""
    request_id = request_id or str(uuid.uuid4())
    payload: dict[str, Any] = {"date": day.isoformat(), "requestId": request_id}
    if force:
        payload["force"] = True
    await pubsub.publish(CHANNEL_E2E_REPORT, payload)
    logger.info("Requested E2E report for %s (request %s, force=%s)", day, request_id, force)
    return request_id
