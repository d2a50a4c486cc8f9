"""Pydantic models for the to-do list API."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from my_dashboard.api.models import CamelModel


class Todo(CamelModel):
    id: int
    title: str
    description: str | None = None
    link: str | None = None
    due_date: datetime | None = None
    is_completed: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TodoCreate(CamelModel):
    title: str = Field(max_length=255)
    description: str | None = None
    link: str | None = Field(default=None, max_length=500)
    due_date: datetime | None = None
    is_completed: bool = False


class TodoUpdate(CamelModel):
    title: str | None = Field(default=None, max_length=255)
    description: str | None = None
    link: str | None = Field(default=None, max_length=500)
    due_date: datetime | None = None
    is_completed: bool | None = None
