"""Background jobs run by the scheduler process.

Every job is ``async def job(ctx: JobContext) -> dict`` and returns a small
summary of what it did, which the scheduler logs.
"""

from __future__ import annotations

from my_dashboard.jobs.base import JobContext, JobFn, notify, run_with_retries
from my_dashboard.jobs.manual_tickets import manual_tickets_reminder
from my_dashboard.jobs.pull_requests import pull_requests_management
from my_dashboard.jobs.report_e2e import report_e2e
from my_dashboard.jobs.todos import delete_completed_todos

JOBS: dict[str, JobFn] = {
    "report_e2e": report_e2e,
    "delete_completed_todos": delete_completed_todos,
    "pull_requests_management": pull_requests_management,
    "manual_tickets_reminder": manual_tickets_reminder,
}

__all__ = [
    "JOBS",
    "JobContext",
    "delete_completed_todos",
    "manual_tickets_reminder",
    "notify",
    "pull_requests_management",
    "report_e2e",
    "run_with_retries",
]
