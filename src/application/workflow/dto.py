"""Workflow DTOs for the HTTP surface."""

from typing import Any

from pydantic import BaseModel, Field


class RunWorkflowRequest(BaseModel):
    """Start a new session."""

    variables: dict[str, Any] = Field(default_factory=dict)
    session_id: str | None = Field(None, max_length=128, pattern=r"^[A-Za-z0-9_-]+$")  # auto-generated if omitted


class ResumeWorkflowRequest(BaseModel):
    """Continue a paused or failed session."""

    answer: Any = None  # reply to the pending interactive prompt, if any


class SessionResponse(BaseModel):
    """Where a session stands after run / resume."""

    session: str
    workflow: str
    status: str
    state: dict[str, Any]
    input_request: dict[str, Any] | None = None

