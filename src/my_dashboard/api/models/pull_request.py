"""Pydantic models for the pull requests API."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from my_dashboard.api.models import CamelModel


class PullRequest(CamelModel):
    id: int
    pull_request_number: int
    repository: str
    created_at: datetime | None = None


class PullRequestCreate(CamelModel):
    pull_request_number: int = Field(gt=0)
    repository: str = Field(pattern=r"^[^/\s]+/[^/\s]+$", max_length=255)


class PullRequestLabel(CamelModel):
    name: str | None = None
    color: str | None = None


class PullRequestAuthor(CamelModel):
    username: str | None = None
    avatar_url: str | None = None
    html_url: str | None = None


class PullRequestDetails(CamelModel):
    """Live GitHub state of a tracked pull request."""

    id: int
    number: int
    title: str | None = None
    state: str | None = None
    is_draft: bool = False
    url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    closed_at: datetime | None = None
    merged_at: datetime | None = None
    labels: list[PullRequestLabel] = Field(default_factory=list)
    mergeable_state: str | None = None
    merged: bool = False
    author: PullRequestAuthor = Field(default_factory=PullRequestAuthor)
