"""CLI for My Dashboard: run the API, the job scheduler and maintenance tasks."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from datetime import UTC, date, datetime
from pathlib import Path

import click

from my_dashboard import __version__
from my_dashboard.config import ConfigError, DashboardConfig, load_config
from my_dashboard.core.logging import configure_logging

logger = logging.getLogger(__name__)


def _load(config_path: Path | None) -> DashboardConfig:
    try:
        if config_path is not None:
            return load_config(config_path)
        return DashboardConfig.from_env()
    except ConfigError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to dashboard.toml (defaults to environment variables)",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None) -> None:
    """My Dashboard: E2E reports, pull requests, Jira and to-dos in one place."""
    config = _load(config_path)
    configure_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_root=config.logging.log_root,
        process_name=ctx.invoked_subcommand,
    )
    ctx.obj = config


@cli.command()
@click.option("--host", default=None, help="Bind address (overrides config)")
@click.option("--port", type=int, default=None, help="Bind port (overrides config)")
@click.pass_obj
def serve(config: DashboardConfig, host: str | None, port: int | None) -> None:
    """Run the REST API (and the pub/sub consumers) with uvicorn."""
    import uvicorn

    from my_dashboard.api.app import create_app

    app = create_app(config)
    uvicorn.run(app, host=host or config.host, port=port or config.port, log_config=None)


@cli.command()
@click.pass_obj
def scheduler(config: DashboardConfig) -> None:
    """Run the cron scheduler for the background jobs."""
    enabled = [job for job in config.schedules if job.enabled]
    if not enabled:
        click.echo("No scheduled jobs enabled")
        sys.exit(1)
    asyncio.run(_run_scheduler(config))


@cli.command()
@click.option("--revision", default="head", show_default=True)
@click.pass_obj
def migrate(config: DashboardConfig, revision: str) -> None:
    """Apply database migrations."""
    from my_dashboard.migrations import run_migrations

    run_migrations(config.db.url, revision=revision)
    click.echo(f"Database migrated to {revision}")


@cli.command("publish-report")
@click.option(
    "--date",
    "report_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Report date (YYYY-MM-DD); defaults to today in UTC",
)
@click.option("--force", is_flag=True, help="Regenerate even if the report is ready")
@click.pass_obj
def publish_report(config: DashboardConfig, report_date, force: bool) -> None:
    """Request generation of an E2E report."""
    day = report_date.date() if report_date is not None else datetime.now(UTC).date()
    request_id = asyncio.run(_publish_report(config, day, force))
    click.echo(f"Requested report for {day.isoformat()} (request {request_id})")


@cli.command("run-job")
@click.argument("name")
@click.option("--retry", is_flag=True, help="Retry up to 5 times, one minute apart")
@click.pass_obj
def run_job(config: DashboardConfig, name: str, retry: bool) -> None:
    """Run one background job immediately."""
    from my_dashboard.jobs import JOBS

    if name not in JOBS:
        click.echo(f"Unknown job {name!r}; choose from: {', '.join(sorted(JOBS))}", err=True)
        sys.exit(1)
    result = asyncio.run(_run_job(config, name, retry))
    click.echo(f"{name}: {result}")


async def _publish_report(config: DashboardConfig, day: date, force: bool) -> str:
    from my_dashboard.db import Database
    from my_dashboard.pubsub import PubSub
    from my_dashboard.services.e2e_reports import publish_report_request

    database = Database.from_config(config.db)
    await database.connect()
    try:
        return await publish_report_request(PubSub(database), day, force=force)
    finally:
        await database.close()


def _build_job_context(config: DashboardConfig, database):
    from my_dashboard.jobs import JobContext
    from my_dashboard.pubsub import PubSub
    from my_dashboard.sdk import ConfigurationError, DashboardClient

    try:
        client = DashboardClient(config.scheduler.api_url, config.auth.api_key or "")
    except ConfigurationError as exc:
        click.echo(f"Cannot build API client: {exc}", err=True)
        sys.exit(1)
    return JobContext(pubsub=PubSub(database), client=client)


async def _run_job(config: DashboardConfig, name: str, retry: bool):
    from my_dashboard.db import Database
    from my_dashboard.jobs import JOBS, run_with_retries

    database = Database.from_config(config.db)
    ctx = _build_job_context(config, database)
    await database.connect()
    try:
        if retry:
            return await run_with_retries(JOBS[name], ctx)
        return await JOBS[name](ctx)
    finally:
        await ctx.client.aclose()
        await database.close()


async def _run_scheduler(config: DashboardConfig) -> None:
    from my_dashboard.core.scheduler import ScheduledJob, Scheduler
    from my_dashboard.db import Database
    from my_dashboard.jobs import JOBS

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def _signal_handler() -> None:
        click.echo("\nShutting down...")
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    database = Database.from_config(config.db)
    ctx = _build_job_context(config, database)
    await database.connect()

    jobs = [
        ScheduledJob(name=job.name, cron=job.cron, fn=JOBS[job.name])
        for job in config.schedules
        if job.enabled
    ]
    runner = Scheduler(
        jobs, ctx, tick_interval_seconds=config.scheduler.tick_interval_seconds
    )
    runner.start()
    click.echo(f"Scheduler running {len(jobs)} job(s)")

    try:
        await shutdown_event.wait()
    finally:
        await runner.stop()
        await ctx.client.aclose()
        await database.close()
