"""Tests for GitHubClient against a mocked transport."""

import json

import httpx
import pytest

from src.domain.ports.source_hosting import HostingRejectedError, HostingUnavailableError, PullRequestParams
from src.infrastructure.services.github_client import GitHubClient


def _client(handler):
    return GitHubClient(token="ghp_test", transport=httpx.MockTransport(handler))


class TestGitHubClient:
    """Tests for GitHubClient."""

    @pytest.mark.asyncio
    async def test_create_pull_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                201,
                json={"number": 7, "html_url": "https://github.com/octo/demo/pull/7", "title": "Add login"},
            )

        pr = await _client(handler).create_pull_request(
            PullRequestParams(repo="octo/demo", title="Add login", head="feature/login")
        )

        assert pr.number == 7
        assert pr.url == "https://github.com/octo/demo/pull/7"
        assert seen["method"] == "POST"
        assert seen["path"] == "/repos/octo/demo/pulls"
        assert seen["auth"] == "Bearer ghp_test"
        assert seen["body"] == {"title": "Add login", "head": "feature/login", "base": "main", "body": ""}

    @pytest.mark.asyncio
    async def test_latest_open_pull_request(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["state"] == "open"
            assert request.url.params["per_page"] == "1"
            return httpx.Response(200, json=[{"number": 9, "html_url": "https://x/9", "title": "t"}])

        pr = await _client(handler).latest_open_pull_request("octo/demo")
        assert pr.number == 9

    @pytest.mark.asyncio
    async def test_no_open_pull_request(self):
        pr = await _client(lambda r: httpx.Response(200, json=[])).latest_open_pull_request("octo/demo")
        assert pr is None

    @pytest.mark.asyncio
    async def test_merge(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "PUT"
            assert request.url.path == "/repos/octo/demo/pulls/9/merge"
            return httpx.Response(200, json={"merged": True, "sha": "abc"})

        assert await _client(handler).merge_pull_request("octo/demo", 9) == {"merged": True, "sha": "abc"}

    @pytest.mark.asyncio
    async def test_error_status(self):
        client = _client(lambda r: httpx.Response(422, json={"message": "Validation Failed"}))
        with pytest.raises(HostingRejectedError, match="Validation Failed") as exc_info:
            await client.create_pull_request(PullRequestParams(repo="octo/demo", title="t", head="h"))
        assert exc_info.value.status_code == 422

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(HostingUnavailableError) as exc_info:
            await _client(handler).latest_open_pull_request("octo/demo")
        assert exc_info.value.timed_out is True

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(HostingUnavailableError) as exc_info:
            await _client(handler).latest_open_pull_request("octo/demo")
        assert exc_info.value.timed_out is False
