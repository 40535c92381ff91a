"""Source Hosting Port - pull request operations (GitHub and friends)."""

from typing import Protocol

from pydantic import BaseModel


class PullRequestParams(BaseModel):
    """Parameters for opening a pull request."""

    repo: str  # "owner/name"
    title: str
    head: str
    base: str = "main"
    body: str = ""


class PullRequest(BaseModel):
    """Pull request as returned by the hosting API."""

    number: int
    url: str
    title: str = ""
    state: str = "open"


class HostingRejectedError(Exception):
    """The hosting API answered with an error status."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class HostingUnavailableError(Exception):
    """The hosting API could not be reached (network failure, timeout)."""

    def __init__(self, message: str, timed_out: bool = False) -> None:
        super().__init__(message)
        self.timed_out = timed_out


class SourceHostingPort(Protocol):
    """Interface consumed by pull request steps."""

    async def create_pull_request(self, params: PullRequestParams) -> PullRequest:
        """Open a pull request."""
        ...

    async def latest_open_pull_request(self, repo: str) -> PullRequest | None:
        """Most recently opened pull request, or None."""
        ...

    async def merge_pull_request(self, repo: str, number: int) -> dict:
        """Merge a pull request; returns the API payload."""
        ...
