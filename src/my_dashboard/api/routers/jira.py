"""Jira ticket endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from my_dashboard.api.deps import get_jira
from my_dashboard.api.models import ApiResponse
from my_dashboard.api.models.jira import JiraSearchResult
from my_dashboard.clients.jira import JiraClient

router = APIRouter(prefix="/api/jira", tags=["jira"])


@router.get("/manual_qa", response_model=ApiResponse[JiraSearchResult])
async def manual_qa_tickets(jira: JiraClient = Depends(get_jira)) -> ApiResponse[JiraSearchResult]:
    """Open tickets labelled for manual QA."""
    result = await jira.manual_qa_tickets()
    return ApiResponse[JiraSearchResult](data=JiraSearchResult.model_validate(result))


@router.get("/my_tickets", response_model=ApiResponse[JiraSearchResult])
async def my_tickets(jira: JiraClient = Depends(get_jira)) -> ApiResponse[JiraSearchResult]:
    """Unresolved tickets assigned to the configured Jira user."""
    result = await jira.my_tickets()
    return ApiResponse[JiraSearchResult](data=JiraSearchResult.model_validate(result))
