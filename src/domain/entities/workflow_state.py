"""Workflow session state - the mutable execution record of one session."""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_UNSAFE_NAME_RE = re.compile(r"[^a-zA-Z0-9_-]")


def utc_now() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(timezone.utc).isoformat()


def safe_name(name: str) -> str:
    """Workflow name usable as a directory name."""
    return _UNSAFE_NAME_RE.sub("_", name) or "_"


@dataclass(frozen=True)
class SessionKey:
    """Identifies one session: workflow name + session id."""

    workflow: str
    session_id: str

    @classmethod
    def parse(cls, value: str) -> "SessionKey":
        """Parse ``"<workflow>/<session id>"``."""
        workflow, sep, session_id = value.rpartition("/")
        if not sep or not workflow or not session_id:
            raise ValueError(f"Invalid session key: {value!r} (expected '<workflow>/<session>')")
        return cls(workflow=workflow, session_id=session_id)

    def __str__(self) -> str:
        return f"{self.workflow}/{self.session_id}"


class SessionStatus(str, Enum):
    """Derived state-machine status of a session."""

    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StepExecution(_CamelModel):
    """One entry of the append-only execution history."""

    step_id: str
    action: str = ""
    success: bool
    output: Any = None
    error: str | None = None
    timestamp: str = Field(default_factory=utc_now)


class WorkflowState(_CamelModel):
    """State of one running / paused / finished session."""

    name: str
    session_id: str
    current_step: str | None
    variables: dict[str, Any] = Field(default_factory=dict)
    history: list[StepExecution] = Field(default_factory=list)
    iteration_count: int = 0
    paused: bool = False
    completed: bool = False
    failed: bool = False
    last_error: dict[str, Any] | None = None
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)

    @property
    def key(self) -> SessionKey:
        return SessionKey(self.name, self.session_id)

    @property
    def status(self) -> SessionStatus:
        if self.completed:
            return SessionStatus.COMPLETED
        if self.failed:
            return SessionStatus.FAILED
        if self.paused:
            return SessionStatus.PAUSED
        if not self.history:
            return SessionStatus.PENDING
        return SessionStatus.RUNNING

    def record(self, execution: StepExecution) -> None:
        """Append to history and bump updated_at."""
        self.history.append(execution)
        self.touch()

    def touch(self) -> None:
        self.updated_at = utc_now()
