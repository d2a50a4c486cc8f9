"""Tests for the external service clients (Jira, GitHub, Cypress, CircleCI)."""

from __future__ import annotations

import json
from datetime import date

import httpx
import pytest

from my_dashboard.clients.circleci import CircleCIClient
from my_dashboard.clients.cypress import CypressClient
from my_dashboard.clients.github import GitHubClient, format_pull_request, split_repository
from my_dashboard.clients.jira import MANUAL_QA_JQL, JiraClient, format_issue
from my_dashboard.errors import ExternalServiceError, ServiceUnavailableError, ValidationError

pytestmark = pytest.mark.unit


class TestJira:
    def test_format_issue(self):
        issue = {
            "id": "100",
            "key": "ACT-1",
            "fields": {
                "summary": "Check login",
                "status": {"name": "In QA"},
                "labels": ["manual_qa"],
                "assignee": None,
                "parent": {"id": "9", "key": "ACT-0", "fields": {"summary": "Epic"}},
            },
        }

        formatted = format_issue(issue, "https://acme.atlassian.net/")

        assert formatted["url"] == "https://acme.atlassian.net/browse/ACT-1"
        assert formatted["status"] == "In QA"
        assert formatted["assignee"] == "Unassigned"
        assert formatted["reporter"] == "Unknown"
        assert formatted["priority"] == "None"
        assert formatted["parent"] == {
            "id": "9",
            "key": "ACT-0",
            "url": "https://acme.atlassian.net/browse/ACT-0",
            "summary": "Epic",
        }

    async def test_search_sends_jql_with_basic_auth(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"issues": [{"id": "1", "key": "ACT-2"}]})

        client = JiraClient(
            "https://acme.atlassian.net",
            "me@acme.com",
            "tok",
            transport=httpx.MockTransport(handler),
        )

        result = await client.manual_qa_tickets()

        assert result["total"] == 1
        assert result["issues"][0]["key"] == "ACT-2"
        assert seen[0].url.path == "/rest/api/3/search/jql"
        assert seen[0].url.params["jql"] == MANUAL_QA_JQL
        assert seen[0].headers["authorization"].startswith("Basic ")
        await client.aclose()

    async def test_unconfigured(self):
        client = JiraClient(None, None, None)
        with pytest.raises(ServiceUnavailableError):
            await client.my_tickets()
        await client.aclose()


class TestGitHub:
    @pytest.mark.parametrize("value", ["acme", "/web", "acme/", "acme/web/extra"])
    def test_split_repository_rejects(self, value):
        with pytest.raises(ValidationError):
            split_repository(value)

    def test_split_repository(self):
        assert split_repository("acme/web") == ("acme", "web")

    def test_format_pull_request(self):
        formatted = format_pull_request(
            {
                "id": 1,
                "number": 42,
                "title": "Fix",
                "state": "open",
                "draft": True,
                "html_url": "https://github.com/acme/web/pull/42",
                "labels": [{"name": "bug", "color": "f00", "id": 3}],
                "mergeable_state": "clean",
                "user": {"login": "dev", "avatar_url": "a", "html_url": "h"},
            }
        )

        assert formatted["is_draft"] is True
        assert formatted["merged"] is False
        assert formatted["labels"] == [{"name": "bug", "color": "f00"}]
        assert formatted["author"] == {"username": "dev", "avatar_url": "a", "html_url": "h"}

    async def test_upstream_error(self):
        client = GitHubClient(
            "tok", transport=httpx.MockTransport(lambda r: httpx.Response(404, text="nope"))
        )
        with pytest.raises(ExternalServiceError) as exc_info:
            await client.pull_request_details("acme/web", 42)
        assert exc_info.value.details["status"] == 404
        await client.aclose()

    async def test_requires_token(self):
        client = GitHubClient(None)
        with pytest.raises(ServiceUnavailableError):
            await client.pull_request_details("acme/web", 1)
        await client.aclose()


class TestCypress:
    async def test_report_query(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[{"project_name": "web", "run_number": 1}])

        client = CypressClient("cy-key", transport=httpx.MockTransport(handler))

        rows = await client.fetch_spec_details(
            ["web", "admin"], date(2025, 9, 18), date(2025, 10, 2)
        )

        assert rows == [{"project_name": "web", "run_number": 1}]
        params = seen[0].url.params
        assert params["report_id"] == "spec-details"
        assert params["token"] == "cy-key"
        assert params["start_date"] == "2025-09-18"
        assert params["end_date"] == "2025-10-02"
        assert params["branch"] == "master"
        assert params.get_list("projects") == ["web", "admin"]
        await client.aclose()

    async def test_non_list_body_is_empty(self):
        client = CypressClient(
            "k", transport=httpx.MockTransport(lambda r: httpx.Response(200, json={}))
        )
        assert await client.fetch_spec_details(["web"], date(2025, 1, 1), date(2025, 1, 2)) == []
        await client.aclose()


class TestCircleCI:
    def _client(self, handler) -> CircleCIClient:
        return CircleCIClient(
            "cc-token",
            "https://circleci.com/api",
            "acme/e2e",
            transport=httpx.MockTransport(handler),
        )

    async def test_trigger_pipeline_posts_raw_config(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"id": "p-1", "number": 7, "state": "created"})

        client = self._client(handler)
        pipeline = await client.trigger_pipeline('{"parameters": {"app": "web"}}')

        assert pipeline.id == "p-1"
        assert pipeline.number == 7
        assert seen[0].url.path == "/api/v2/project/github/acme/e2e/pipeline"
        assert seen[0].headers["circle-token"] == "cc-token"
        assert json.loads(seen[0].content) == {"parameters": {"app": "web"}}
        await client.aclose()

    async def test_trigger_rejects_invalid_json(self):
        client = self._client(lambda r: httpx.Response(500))
        with pytest.raises(ValidationError):
            await client.trigger_pipeline("{not json")
        await client.aclose()

    async def test_latest_workflow(self):
        body = {
            "items": [
                {
                    "id": "w-1",
                    "pipeline_id": "p-1",
                    "name": "e2e",
                    "project_slug": "gh/acme/e2e",
                    "status": "on_hold",
                    "pipeline_number": 7,
                    "created_at": "2025-10-02T10:00:00Z",
                }
            ]
        }
        client = self._client(lambda r: httpx.Response(200, json=body))

        workflow = await client.latest_workflow("p-1")

        assert workflow.in_progress is True
        assert client.workflow_url(workflow) == (
            "https://circleci.com/api/pipelines/gh/acme/e2e/7/workflows/w-1"
        )
        await client.aclose()

    async def test_latest_workflow_without_items(self):
        client = self._client(lambda r: httpx.Response(200, json={"items": []}))
        with pytest.raises(ExternalServiceError):
            await client.latest_workflow("p-1")
        await client.aclose()

    async def test_unconfigured(self):
        client = CircleCIClient(None, None, None)
        assert client.configured is False
        with pytest.raises(ServiceUnavailableError):
            await client.latest_workflow("p-1")
        await client.aclose()
