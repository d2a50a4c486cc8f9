"""Tests for the scheduled background jobs."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from my_dashboard.jobs import (
    JOBS,
    JobContext,
    delete_completed_todos,
    manual_tickets_reminder,
    pull_requests_management,
    report_e2e,
    run_with_retries,
)
from my_dashboard.pubsub import (
    CHANNEL_E2E_REPORT,
    CHANNEL_NOTIFICATION_CREATE,
    CHANNEL_PULL_REQUEST_DELETE,
)
from my_dashboard.sdk import APIError

pytestmark = pytest.mark.unit

NOW = datetime(2025, 10, 10, 12, 0, tzinfo=UTC)


@pytest.fixture
def ctx() -> JobContext:
    client = MagicMock()
    client.todos.list = AsyncMock(return_value=[])
    client.todos.delete = AsyncMock()
    client.pull_requests.list = AsyncMock(return_value=[])
    client.pull_requests.details = AsyncMock()
    client.jira.manual_qa = AsyncMock(return_value={"total": 0, "issues": []})
    return JobContext(pubsub=AsyncMock(), client=client)


def _published(ctx: JobContext, channel: str) -> list[dict]:
    return [
        call.args[1] for call in ctx.pubsub.publish.await_args_list if call.args[0] == channel
    ]


class TestRegistry:
    def test_all_jobs_registered(self):
        assert set(JOBS) == {
            "report_e2e",
            "delete_completed_todos",
            "pull_requests_management",
            "manual_tickets_reminder",
        }


class TestReportE2E:
    async def test_publishes_request_for_today(self, ctx):
        result = await report_e2e(ctx)

        assert result["published"] is True
        [payload] = _published(ctx, CHANNEL_E2E_REPORT)
        assert payload["date"] == datetime.now(UTC).date().isoformat()
        assert payload["requestId"] == result["requestId"]

    async def test_publish_failure_is_reported(self, ctx):
        ctx.pubsub.publish.side_effect = RuntimeError("no pool")
        assert await report_e2e(ctx) == {"published": False}


class TestDeleteCompletedTodos:
    async def test_deletes_completed_items_and_counts_failures(self, ctx):
        ctx.client.todos.list.return_value = [
            {"id": 1, "title": "a", "isCompleted": True},
            {"id": 2, "title": "b", "isCompleted": False},
            {"id": 3, "title": "c", "isCompleted": True},
        ]
        ctx.client.todos.delete.side_effect = [None, APIError(500, "Server error")]

        assert await delete_completed_todos(ctx) == {"deleted": 1, "failed": 1}
        assert [c.args[0] for c in ctx.client.todos.delete.await_args_list] == [1, 3]

    async def test_nothing_to_delete(self, ctx):
        assert await delete_completed_todos(ctx) == {"deleted": 0, "failed": 0}


def _pr(
    pr_id, number, *, state="open", merged=False, mergeable="blocked", created=NOW, merged_at=None
):
    row = {"id": pr_id, "pullRequestNumber": number, "repository": "acme/web"}
    details = {
        "number": number,
        "state": state,
        "merged": merged,
        "mergeableState": mergeable,
        "createdAt": created.isoformat().replace("+00:00", "Z"),
        "mergedAt": merged_at,
    }
    return row, details


def _days_ago(days: int) -> datetime:
    return NOW.replace(day=NOW.day - days)


class TestPullRequestsManagement:
    def _setup(self, ctx, prs):
        ctx.client.pull_requests.list.return_value = [row for row, _ in prs]
        by_id = {row["id"]: details for row, details in prs}

        async def details(pr_id):
            value = by_id[pr_id]
            if isinstance(value, Exception):
                raise value
            return value

        ctx.client.pull_requests.details.side_effect = details

    async def test_ready_to_merge_plural(self, ctx):
        self._setup(ctx, [_pr(1, 101, mergeable="clean"), _pr(2, 102, mergeable="unstable")])

        await pull_requests_management(ctx, now=NOW)

        [notification] = _published(ctx, CHANNEL_NOTIFICATION_CREATE)
        assert notification == {
            "title": "Pull Requests Ready to Merge",
            "message": "There are 2 pull requests ready to merge: #101, #102.",
            "type": "info",
            "link": "/pull_requests",
        }

    async def test_ready_to_merge_singular(self, ctx):
        self._setup(ctx, [_pr(1, 101, mergeable="clean")])
        await pull_requests_management(ctx, now=NOW)
        [notification] = _published(ctx, CHANNEL_NOTIFICATION_CREATE)
        assert notification["message"] == "There is 1 pull request ready to merge: #101."

    async def test_conflicts(self, ctx):
        self._setup(ctx, [_pr(1, 7, mergeable="dirty"), _pr(2, 8, mergeable="dirty")])
        await pull_requests_management(ctx, now=NOW)
        [notification] = _published(ctx, CHANNEL_NOTIFICATION_CREATE)
        assert notification["title"] == "Pull Requests with Conflicts"
        assert notification["message"] == "There are 2 pull requests with merge conflicts: #7, #8."
        assert notification["type"] == "warning"

    async def test_age_reminders(self, ctx):
        self._setup(
            ctx,
            [
                _pr(1, 11, created=_days_ago(8)),
                _pr(2, 12, created=_days_ago(7)),
                _pr(3, 13, created=_days_ago(4)),
                _pr(4, 14, created=_days_ago(1)),
            ],
        )

        await pull_requests_management(ctx, now=NOW)

        notifications = {n["title"]: n for n in _published(ctx, CHANNEL_NOTIFICATION_CREATE)}
        assert notifications["Pull Requests Reminder (7+ days old)"] == {
            "title": "Pull Requests Reminder (7+ days old)",
            "message": "2 pull requests have been open for 7+ days: #11, #12. Please review!",
            "type": "warning",
            "link": "/pull_requests",
        }
        three = notifications["Pull Requests Reminder (3+ days old)"]
        assert three["message"] == "1 pull request has been open for 3+ days: #13"
        assert three["type"] == "info"
        assert len(notifications) == 2

    async def test_merged_pull_requests_are_deleted(self, ctx):
        self._setup(
            ctx,
            [
                _pr(5, 55, state="closed", merged=True, merged_at="2025-10-09T10:00:00Z"),
                _pr(6, 66, state="closed", merged=False),
            ],
        )

        result = await pull_requests_management(ctx, now=NOW)

        assert _published(ctx, CHANNEL_PULL_REQUEST_DELETE) == [
            {
                "id": 5,
                "pullRequestNumber": 55,
                "repository": "acme/web",
                "reason": "Merged at 2025-10-09T10:00:00Z",
            }
        ]
        assert _published(ctx, CHANNEL_NOTIFICATION_CREATE) == []
        assert result["deletions"] == 1

    async def test_failed_detail_fetch_is_skipped(self, ctx):
        row, _details = _pr(1, 101)
        good = _pr(2, 102, mergeable="clean")
        self._setup(ctx, [(row, APIError(404, "Resource not found")), good])

        result = await pull_requests_management(ctx, now=NOW)

        assert result["errors"] == 1
        assert result["pullRequests"] == 1
        [notification] = _published(ctx, CHANNEL_NOTIFICATION_CREATE)
        assert notification["message"] == "There is 1 pull request ready to merge: #102."

    async def test_no_pull_requests(self, ctx):
        result = await pull_requests_management(ctx, now=NOW)
        assert result["pullRequests"] == 0
        ctx.pubsub.publish.assert_not_awaited()


class TestManualTicketsReminder:
    async def test_plural(self, ctx):
        ctx.client.jira.manual_qa.return_value = {"total": 3, "issues": [{}, {}, {}]}

        await manual_tickets_reminder(ctx)

        [notification] = _published(ctx, CHANNEL_NOTIFICATION_CREATE)
        assert notification == {
            "title": "Manual Testing Tickets - Reminder",
            "message": "There are 3 tickets that need attention.",
            "type": "warning",
            "link": "/",
        }

    async def test_singular(self, ctx):
        ctx.client.jira.manual_qa.return_value = {"total": 1, "issues": [{}]}
        await manual_tickets_reminder(ctx)
        [notification] = _published(ctx, CHANNEL_NOTIFICATION_CREATE)
        assert notification["message"] == "There is 1 ticket that needs attention."

    async def test_no_tickets_no_notification(self, ctx):
        result = await manual_tickets_reminder(ctx)
        assert result == {"tickets": 0, "notified": False}
        ctx.pubsub.publish.assert_not_awaited()


class TestRunWithRetries:
    async def test_retries_until_success(self, ctx, monkeypatch):
        sleep = AsyncMock()
        monkeypatch.setattr("my_dashboard.jobs.base.asyncio.sleep", sleep)
        job = AsyncMock(side_effect=[RuntimeError("1"), RuntimeError("2"), {"ok": True}])

        assert await run_with_retries(job, ctx, attempts=5, delay=60) == {"ok": True}
        assert job.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [60, 60]

    async def test_gives_up_after_attempts(self, ctx, monkeypatch):
        monkeypatch.setattr("my_dashboard.jobs.base.asyncio.sleep", AsyncMock())
        job = AsyncMock(side_effect=RuntimeError("down"))

        with pytest.raises(RuntimeError, match="down"):
            await run_with_retries(job, ctx, attempts=2, delay=0)
        assert job.await_count == 2
