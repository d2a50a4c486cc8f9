"""Pydantic models for the Jira API."""

from __future__ import annotations

from pydantic import Field

from my_dashboard.api.models import CamelModel


class JiraParent(CamelModel):
    id: str | None = None
    key: str | None = None
    url: str | None = None
    summary: str | None = None


class JiraIssue(CamelModel):
    id: str
    key: str
    url: str
    summary: str | None = None
    status: str | None = None
    created: str | None = None
    updated: str | None = None
    assignee: str = "Unassigned"
    reporter: str = "Unknown"
    labels: list[str] = Field(default_factory=list)
    priority: str = "None"
    parent: JiraParent | None = None


class JiraSearchResult(CamelModel):
    total: int
    issues: list[JiraIssue]
