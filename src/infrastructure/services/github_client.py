"""GitHub client - pull request operations over the GitHub REST API."""

import logging
from typing import Any

import httpx

from src.domain.ports.source_hosting import (
    HostingRejectedError,
    HostingUnavailableError,
    PullRequest,
    PullRequestParams,
)

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"


class GitHubClient:
    """SourceHostingPort for GitHub (or GitHub Enterprise via ``api_url``)."""

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
            "User-Agent": "codi-workflows",
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"
        self._timeout = httpx.Timeout(timeout, connect=10.0)
        self._transport = transport

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self._api_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                headers=self._headers,
                transport=self._transport,
            ) as client:
                resp = await client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise HostingUnavailableError(f"{method} {path} timed out", timed_out=True) from e
        except httpx.TransportError as e:
            raise HostingUnavailableError(f"{method} {path} failed: {e}") from e

        if resp.status_code >= 400:
            try:
                detail = resp.json().get("message") or resp.text
            except ValueError:
                detail = resp.text
            logger.warning("GitHub %s %s -> %d: %s", method, path, resp.status_code, detail)
            raise HostingRejectedError(detail or f"HTTP {resp.status_code}", resp.status_code)
        if resp.status_code == 204 or not resp.content:
            return {}
        return resp.json()

    @staticmethod
    def _to_pr(data: dict) -> PullRequest:
        return PullRequest(
            number=data["number"],
            url=data.get("html_url") or data.get("url", ""),
            title=data.get("title", ""),
            state=data.get("state", "open"),
        )

    async def create_pull_request(self, params: PullRequestParams) -> PullRequest:
        data = await self._request(
            "POST",
            f"/repos/{params.repo}/pulls",
            json={"title": params.title, "head": params.head, "base": params.base, "body": params.body},
        )
        return self._to_pr(data)

    async def latest_open_pull_request(self, repo: str) -> PullRequest | None:
        data = await self._request(
            "GET",
            f"/repos/{repo}/pulls",
            params={"state": "open", "sort": "created", "direction": "desc", "per_page": 1},
        )
        if not data:
            return None
        return self._to_pr(data[0])

    async def merge_pull_request(self, repo: str, number: int) -> dict:
        return await self._request("PUT", f"/repos/{repo}/pulls/{number}/merge")
