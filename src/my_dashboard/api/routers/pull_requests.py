"""Tracked pull request endpoints."""

from __future__ import annotations

import asyncpg
from fastapi import APIRouter, Depends, Response

from my_dashboard.api.deps import get_github, get_pool
from my_dashboard.api.models import ApiResponse
from my_dashboard.api.models.pull_request import (
    PullRequest,
    PullRequestCreate,
    PullRequestDetails,
)
from my_dashboard.clients.github import GitHubClient
from my_dashboard.services import pull_requests

router = APIRouter(prefix="/api/pull_requests", tags=["pull_requests"])


@router.get("", response_model=ApiResponse[list[PullRequest]])
async def list_pull_requests(
    pool: asyncpg.Pool = Depends(get_pool),
) -> ApiResponse[list[PullRequest]]:
    rows = await pull_requests.list_pull_requests(pool)
    return ApiResponse[list[PullRequest]](data=[PullRequest.model_validate(row) for row in rows])


@router.post("", status_code=201, response_model=ApiResponse[PullRequest])
async def add_pull_request(
    body: PullRequestCreate, pool: asyncpg.Pool = Depends(get_pool)
) -> ApiResponse[PullRequest]:
    row = await pull_requests.add_pull_request(
        pool,
        pull_request_number=body.pull_request_number,
        repository=body.repository,
    )
    return ApiResponse[PullRequest](data=PullRequest.model_validate(row))


@router.get("/{pr_id}", response_model=ApiResponse[PullRequestDetails])
async def get_pull_request_details(
    pr_id: int,
    pool: asyncpg.Pool = Depends(get_pool),
    github: GitHubClient = Depends(get_github),
) -> ApiResponse[PullRequestDetails]:
    details = await pull_requests.get_with_details(pool, github, pr_id)
    return ApiResponse[PullRequestDetails](data=PullRequestDetails.model_validate(details))


@router.delete("/{pr_id}", status_code=204)
async def delete_pull_request(pr_id: int, pool: asyncpg.Pool = Depends(get_pool)) -> Response:
    await pull_requests.delete_pull_request(pool, pr_id)
    return Response(status_code=204)
