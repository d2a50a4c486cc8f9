"""Store-level behaviour of notifications, to-dos, apps and device tokens."""

from __future__ import annotations

import shutil
from datetime import UTC, datetime, timedelta

import pytest

from my_dashboard.errors import ConflictError, NotFoundError, ValidationError
from my_dashboard.services import apps, device_tokens, notifications, pull_requests, todos

docker_available = shutil.which("docker") is not None

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not docker_available, reason="Docker not available"),
]


class TestNotifications:
    async def test_create_then_mark_read_is_idempotent(self, provisioned_postgres_pool):
        async with provisioned_postgres_pool() as pool:
            created = await notifications.create_notification(
                pool, title="Build", message="web failed", type="error"
            )
            assert created["is_read"] is False

            await notifications.mark_read(pool, created["id"])
            await notifications.mark_read(pool, created["id"])

            rows, total = await notifications.list_notifications(pool, is_read=True)
            assert total == 1
            assert rows[0]["id"] == created["id"]

    async def test_bulk_actions_report_counts(self, provisioned_postgres_pool):
        async with provisioned_postgres_pool() as pool:
            for index in range(3):
                await notifications.create_notification(
                    pool, title=f"n{index}", message="body"
                )

            assert await notifications.mark_all_read(pool) == 3
            assert await notifications.mark_all_read(pool) == 0
            assert await notifications.delete_all(pool) == 3

    async def test_delete_all_on_empty_table(self, provisioned_postgres_pool):
        async with provisioned_postgres_pool() as pool:
            assert await notifications.delete_all(pool) == 0

    async def test_pagination_is_newest_first(self, provisioned_postgres_pool):
        async with provisioned_postgres_pool() as pool:
            ids = [
                (await notifications.create_notification(pool, title=f"n{i}", message="m"))["id"]
                for i in range(5)
            ]
            rows, total = await notifications.list_notifications(pool, offset=1, limit=2)
            assert total == 5
            assert [row["id"] for row in rows] == [ids[3], ids[2]]

    async def test_invalid_type_is_rejected(self, provisioned_postgres_pool):
        async with provisioned_postgres_pool() as pool:
            with pytest.raises(ValidationError):
                await notifications.create_notification(
                    pool, title="t", message="m", type="loud"
                )


class TestTodos:
    async def test_due_date_ordering_puts_undated_last(self, provisioned_postgres_pool):
        async with provisioned_postgres_pool() as pool:
            now = datetime.now(UTC)
            undated = await todos.create_todo(pool, title="whenever")
            later = await todos.create_todo(pool, title="later", due_date=now + timedelta(days=2))
            sooner = await todos.create_todo(pool, title="sooner", due_date=now)

            listed = await todos.list_todos(pool)

            assert [t["id"] for t in listed] == [sooner["id"], later["id"], undated["id"]]

    async def test_update_marks_completed(self, provisioned_postgres_pool):
        async with provisioned_postgres_pool() as pool:
            first = await todos.create_todo(pool, title="one")
            await todos.create_todo(pool, title="two")

            updated = await todos.update_todo(pool, first["id"], is_completed=True)
            assert updated["is_completed"] is True

            assert [t["is_completed"] for t in await todos.list_todos(pool)] == [True, False]

    async def test_get_missing(self, provisioned_postgres_pool):
        async with provisioned_postgres_pool() as pool:
            with pytest.raises(NotFoundError):
                await todos.get_todo(pool, 12345)


class TestApps:
    async def test_code_is_unique(self, provisioned_postgres_pool):
        async with provisioned_postgres_pool() as pool:
            await apps.create_app(pool, name="Web", code="web")
            with pytest.raises(ConflictError):
                await apps.create_app(pool, name="Web 2", code="web")

    async def test_partial_update(self, provisioned_postgres_pool):
        async with provisioned_postgres_pool() as pool:
            app = await apps.create_app(pool, name="Web", code="web")
            updated = await apps.update_app(pool, app["id"], watching=True)
            assert updated["watching"] is True
            assert updated["name"] == "Web"


class TestPullRequests:
    async def test_duplicate_pull_request_is_conflict(self, provisioned_postgres_pool):
        async with provisioned_postgres_pool() as pool:
            await pull_requests.add_pull_request(
                pool, pull_request_number=12, repository="acme/web"
            )
            with pytest.raises(ConflictError):
                await pull_requests.add_pull_request(
                    pool, pull_request_number=12, repository="acme/web"
                )


class TestDeviceTokens:
    async def test_register_is_an_upsert(self, provisioned_postgres_pool):
        async with provisioned_postgres_pool() as pool:
            first = await device_tokens.register(pool, "device-token-0001")
            second = await device_tokens.register(pool, "device-token-0001")
            assert first["id"] == second["id"]
            assert await device_tokens.list_tokens(pool) == ["device-token-0001"]

    async def test_remove_stale_tokens(self, provisioned_postgres_pool):
        async with provisioned_postgres_pool() as pool:
            await device_tokens.register(pool, "device-token-0001")
            await device_tokens.register(pool, "device-token-0002")

            assert await device_tokens.remove_tokens(pool, ["device-token-0002", "gone"]) == 1
            assert await device_tokens.unregister(pool, "device-token-0001") is True
            assert await device_tokens.unregister(pool, "device-token-0001") is False
