"""Pull request housekeeping: merge readiness, age reminders and cleanup.

All tracked pull requests are fetched with their GitHub details once per run;
the three checks below share that snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from my_dashboard.jobs.base import notify
from my_dashboard.pubsub import CHANNEL_PULL_REQUEST_DELETE
from my_dashboard.sdk import DashboardSDKError

if TYPE_CHECKING:
    from my_dashboard.jobs.base import JobContext

logger = logging.getLogger(__name__)

PULL_REQUESTS_LINK = "/pull_requests"
READY_STATES = ("clean", "unstable")
CONFLICT_STATES = ("dirty",)


@dataclass
class TrackedPullRequest:
    """A stored pull request joined with its live GitHub details."""

    id: int
    repository: str
    number: int
    state: str | None
    merged: bool
    mergeable_state: str | None
    created_at: datetime | None
    merged_at: str | None


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def age_in_days(created_at: datetime, now: datetime) -> int:
    return (now - created_at).days


def _numbers(prs: list[TrackedPullRequest]) -> str:
    return ", ".join(f"#{pr.number}" for pr in prs)


def merge_status_message(prs: list[TrackedPullRequest], condition: str) -> str:
    size = len(prs)
    if size == 1:
        return f"There is 1 pull request {condition}: {_numbers(prs)}."
    return f"There are {size} pull requests {condition}: {_numbers(prs)}."


def age_message(prs: list[TrackedPullRequest], days: int) -> str:
    size = len(prs)
    noun = "pull request has" if size == 1 else "pull requests have"
    message = f"{size} {noun} been open for {days}+ days: {_numbers(prs)}"
    if days >= 7:
        message += ". Please review!"
    return message


async def fetch_tracked(ctx: JobContext) -> tuple[list[TrackedPullRequest], int]:
    """Return every tracked PR with details, plus the count of failed detail fetches."""
    stored = await ctx.client.pull_requests.list() or []
    tracked: list[TrackedPullRequest] = []
    errors = 0
    for row in stored:
        try:
            details = await ctx.client.pull_requests.details(row["id"])
        except DashboardSDKError:
            logger.warning(
                "Failed to fetch details for %s#%s",
                row.get("repository"),
                row.get("pullRequestNumber"),
                exc_info=True,
            )
            errors += 1
            continue
        tracked.append(
            TrackedPullRequest(
                id=row["id"],
                repository=row["repository"],
                number=details.get("number") or row["pullRequestNumber"],
                state=details.get("state"),
                merged=bool(details.get("merged")),
                mergeable_state=details.get("mergeableState"),
                created_at=_parse_datetime(details.get("createdAt")),
                merged_at=details.get("mergedAt"),
            )
        )
    return tracked, errors


async def _check_merge_status(ctx: JobContext, open_prs: list[TrackedPullRequest]) -> int:
    ready = [pr for pr in open_prs if pr.mergeable_state in READY_STATES]
    conflicts = [pr for pr in open_prs if pr.mergeable_state in CONFLICT_STATES]
    sent = 0
    if ready:
        await notify(
            ctx,
            title="Pull Requests Ready to Merge",
            message=merge_status_message(ready, "ready to merge"),
            type="info",
            link=PULL_REQUESTS_LINK,
        )
        sent += 1
    if conflicts:
        await notify(
            ctx,
            title="Pull Requests with Conflicts",
            message=merge_status_message(conflicts, "with merge conflicts"),
            type="warning",
            link=PULL_REQUESTS_LINK,
        )
        sent += 1
    return sent


async def _check_age(
    ctx: JobContext, open_prs: list[TrackedPullRequest], now: datetime
) -> int:
    three_days: list[TrackedPullRequest] = []
    seven_days: list[TrackedPullRequest] = []
    for pr in open_prs:
        if pr.created_at is None:
            continue
        age = age_in_days(pr.created_at, now)
        if age >= 7:
            seven_days.append(pr)
        elif age >= 3:
            three_days.append(pr)

    sent = 0
    if three_days:
        await notify(
            ctx,
            title="Pull Requests Reminder (3+ days old)",
            message=age_message(three_days, 3),
            type="info",
            link=PULL_REQUESTS_LINK,
        )
        sent += 1
    if seven_days:
        await notify(
            ctx,
            title="Pull Requests Reminder (7+ days old)",
            message=age_message(seven_days, 7),
            type="warning",
            link=PULL_REQUESTS_LINK,
        )
        sent += 1
    return sent


async def _delete_merged(ctx: JobContext, merged: list[TrackedPullRequest]) -> int:
    published = 0
    for pr in merged:
        try:
            await ctx.pubsub.publish(
                CHANNEL_PULL_REQUEST_DELETE,
                {
                    "id": pr.id,
                    "pullRequestNumber": pr.number,
                    "repository": pr.repository,
                    "reason": f"Merged at {pr.merged_at}",
                },
            )
        except Exception:
            logger.exception("Failed to publish deletion of %s#%s", pr.repository, pr.number)
            continue
        published += 1
    return published


async def pull_requests_management(
    ctx: JobContext, *, now: datetime | None = None
) -> dict[str, Any]:
    now = now or datetime.now(UTC)
    tracked, errors = await fetch_tracked(ctx)
    if errors:
        logger.warning("Failed to fetch details for %d pull request(s)", errors)
    if not tracked:
        logger.info("No pull requests to manage")
        return {"pullRequests": 0, "errors": errors, "notifications": 0, "deletions": 0}

    open_prs = [pr for pr in tracked if pr.state == "open" and not pr.merged]
    merged = [pr for pr in tracked if pr.merged]

    notifications = await _check_merge_status(ctx, open_prs)
    notifications += await _check_age(ctx, open_prs, now)
    deletions = await _delete_merged(ctx, merged)

    return {
        "pullRequests": len(tracked),
        "errors": errors,
        "notifications": notifications,
        "deletions": deletions,
    }
