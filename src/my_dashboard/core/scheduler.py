"""Cron-driven job scheduler for the dashboard's background jobs.

Each configured job carries its own ``next_run_at`` computed with croniter.
At every ``tick()`` the due jobs run one after another, so a slow job delays
the next one instead of overlapping with it.  A failing job is logged and
counted; its ``next_run_at`` still advances.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from croniter import croniter
from opentelemetry import trace

from my_dashboard.core.metrics import job_runs_total

logger = logging.getLogger(__name__)

JobFn = Callable[[Any], Awaitable[dict[str, Any] | None]]


def _next_run(cron: str, *, now: datetime | None = None) -> datetime:
    """Compute the next run time for a cron expression from now (UTC)."""
    anchor = now or datetime.now(UTC)
    return croniter(cron, anchor).get_next(datetime).replace(tzinfo=UTC)


@dataclass
class ScheduledJob:
    name: str
    cron: str
    fn: JobFn
    next_run_at: datetime | None = None
    last_run_at: datetime | None = None
    last_result: dict[str, Any] | None = None


class Scheduler:
    """Runs ``ScheduledJob`` entries against a shared job context.

    Usage::

        scheduler = Scheduler(jobs, ctx, tick_interval_seconds=30)
        scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        jobs: list[ScheduledJob],
        ctx: Any,
        *,
        tick_interval_seconds: float = 30,
    ) -> None:
        self.jobs = jobs
        self._ctx = ctx
        self._tick_interval_seconds = tick_interval_seconds
        self._task: asyncio.Task | None = None
        now = datetime.now(UTC)
        for job in self.jobs:
            if job.next_run_at is None:
                job.next_run_at = _next_run(job.cron, now=now)

    @property
    def running(self) -> bool:
        return self._task is not None

    async def tick(self, now: datetime | None = None) -> int:
        """Run every job whose ``next_run_at`` has passed.

        Returns the number of jobs that completed without raising.
        """
        tracer = trace.get_tracer("my_dashboard")
        with tracer.start_as_current_span("dashboard.scheduler.tick") as span:
            now = now or datetime.now(UTC)
            due = [job for job in self.jobs if job.next_run_at and job.next_run_at <= now]
            span.set_attribute("jobs_due", len(due))

            succeeded = 0
            for job in due:
                logger.info("Running scheduled job: %s", job.name)
                try:
                    job.last_result = await job.fn(self._ctx)
                    succeeded += 1
                    job_runs_total.labels(job=job.name, status="success").inc()
                    logger.info("Scheduled job %s finished: %s", job.name, job.last_result)
                except Exception as exc:
                    logger.exception("Scheduled job failed: %s", job.name)
                    job.last_result = {"error": str(exc)}
                    job_runs_total.labels(job=job.name, status="error").inc()

                job.last_run_at = now
                job.next_run_at = _next_run(job.cron, now=now)
                logger.debug("Next run of %s at %s", job.name, job.next_run_at.isoformat())

            span.set_attribute("jobs_run", succeeded)
            return succeeded

    def start(self) -> None:
        """Start the background tick loop."""
        if self._task is not None:
            logger.warning("Scheduler already running")
            return
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "Started scheduler with %d job(s): %s",
            len(self.jobs),
            ", ".join(f"{job.name} [{job.cron}]" for job in self.jobs),
        )

    async def stop(self) -> None:
        """Cancel the tick loop and wait for the running job to unwind."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Scheduler stopped")

    async def _loop(self) -> None:
        try:
            while True:
                try:
                    await self.tick()
                except Exception:
                    logger.exception("Scheduler tick failed")
                await asyncio.sleep(self._tick_interval_seconds)
        except asyncio.CancelledError:
            logger.debug("Scheduler loop cancelled")
            raise
