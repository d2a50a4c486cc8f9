"""To-do list endpoints."""

from __future__ import annotations

import asyncpg
from fastapi import APIRouter, Depends, Response

from my_dashboard.api.deps import get_pool
from my_dashboard.api.models import ApiResponse
from my_dashboard.api.models.todo import Todo, TodoCreate, TodoUpdate
from my_dashboard.services import todos

router = APIRouter(prefix="/api/to_do_list", tags=["todos"])


@router.get("", response_model=ApiResponse[list[Todo]])
async def list_todos(pool: asyncpg.Pool = Depends(get_pool)) -> ApiResponse[list[Todo]]:
    rows = await todos.list_todos(pool)
    return ApiResponse[list[Todo]](data=[Todo.model_validate(row) for row in rows])


@router.post("", status_code=201, response_model=ApiResponse[Todo])
async def create_todo(
    body: TodoCreate, pool: asyncpg.Pool = Depends(get_pool)
) -> ApiResponse[Todo]:
    row = await todos.create_todo(pool, **body.model_dump())
    return ApiResponse[Todo](data=Todo.model_validate(row))


@router.get("/{todo_id}", response_model=ApiResponse[Todo])
async def get_todo(todo_id: int, pool: asyncpg.Pool = Depends(get_pool)) -> ApiResponse[Todo]:
    row = await todos.get_todo(pool, todo_id)
    return ApiResponse[Todo](data=Todo.model_validate(row))


@router.put("/{todo_id}", response_model=ApiResponse[Todo])
async def update_todo(
    todo_id: int, body: TodoUpdate, pool: asyncpg.Pool = Depends(get_pool)
) -> ApiResponse[Todo]:
    row = await todos.update_todo(pool, todo_id, **body.model_dump(exclude_unset=True))
    return ApiResponse[Todo](data=Todo.model_validate(row))


@router.delete("/{todo_id}", status_code=204)
async def delete_todo(todo_id: int, pool: asyncpg.Pool = Depends(get_pool)) -> Response:
    await todos.delete_todo(pool, todo_id)
    return Response(status_code=204)
