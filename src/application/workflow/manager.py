"""Workflow manager - discovery, validation and session lifecycle in one facade."""

import contextlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from src.application.workflow.cancellation import CancellationToken, forward_interrupts
from src.application.workflow.executor import StepExecutor
from src.application.workflow.parser import (
    WORKFLOW_SUFFIXES,
    WorkflowListing,
    find_workflow_file,
    get_workflow_by_name,
    list_workflows,
    read_workflow_document,
)
from src.application.workflow.steps import InputRequest, interpolate_step
from src.application.workflow.summary import WorkflowSummary, summarize
from src.application.workflow.validator import ValidationReport, validate_workflow_with_feedback
from src.domain.entities.workflow import InteractiveStep, Workflow
from src.domain.entities.workflow_state import SessionKey, SessionStatus, WorkflowState
from src.domain.errors import (
    SessionNotFoundError,
    StateError,
    ValidationError,
    WorkflowNotFoundError,
)
from src.domain.ports.config import DEFAULT_WORKFLOW_DIRECTORIES
from src.domain.ports.store import StateRepositoryPort

logger = logging.getLogger(__name__)


@dataclass
class WorkflowSession:
    """Result of run / resume: where the session stands now."""

    key: SessionKey
    workflow: Workflow
    state: WorkflowState

    @property
    def status(self) -> SessionStatus:
        return self.state.status

    @property
    def input_request(self) -> InputRequest | None:
        """What the session waits for, when paused at an interactive step."""
        if not self.state.paused or not self.state.current_step:
            return None
        step = self.workflow.get_step(self.state.current_step)
        if not isinstance(step, InteractiveStep):
            return None
        return InputRequest.for_step(interpolate_step(step, self.state.variables))

    def to_dict(self) -> dict[str, Any]:
        request = self.input_request
        return {
            "session": str(self.key),
            "workflow": self.workflow.name,
            "status": self.status.value,
            "state": self.state.model_dump(mode="json", by_alias=True),
            "inputRequest": request.to_dict() if request else None,
        }


def _as_key(key: SessionKey | str) -> SessionKey:
    if isinstance(key, SessionKey):
        return key
    try:
        return SessionKey.parse(key)
    except ValueError as e:
        raise StateError(str(e), hints=["Session keys look like <workflow>/<session id>"]) from e


class WorkflowManager:
    """Entry point for everything that drives workflows (HTTP routes, CLI)."""

    def __init__(
        self,
        states: StateRepositoryPort,
        executor: StepExecutor,
        directories: list[str] | None = None,
    ) -> None:
        self._states = states
        self._executor = executor
        self._directories = list(directories) if directories is not None else list(DEFAULT_WORKFLOW_DIRECTORIES)

    @property
    def directories(self) -> list[str]:
        return list(self._directories)

    def list_available_workflows(self) -> list[WorkflowListing]:
        return list_workflows(self._directories)

    def get_workflow_by_name(self, name: str) -> Workflow | None:
        return get_workflow_by_name(name, self._directories)

    def load(self, name: str) -> Workflow:
        """Workflow by name; raises WorkflowNotFoundError when missing."""
        workflow = self.get_workflow_by_name(name)
        if workflow is None:
            raise WorkflowNotFoundError(f"Workflow not found: {name}", workflow=name)
        return workflow

    def validate(self, name_or_path: str | Path) -> ValidationReport:
        """Full validation report for a workflow file or name."""
        path = Path(name_or_path).expanduser()
        if not (path.suffix in WORKFLOW_SUFFIXES and path.is_file()):
            found = find_workflow_file(str(name_or_path), self._directories)
            if found is None:
                raise WorkflowNotFoundError(f"Workflow not found: {name_or_path}", workflow=str(name_or_path))
            path = found
        try:
            raw = read_workflow_document(path)
        except ValidationError as e:
            report = ValidationReport()
            report.add(e.message, "Fix the YAML syntax first")
            return report
        return validate_workflow_with_feedback(raw)

    async def run(
        self,
        workflow: Workflow | str,
        initial_variables: dict[str, Any] | None = None,
        session_id: str | None = None,
        token: CancellationToken | None = None,
        handle_signals: bool = False,
    ) -> WorkflowSession:
        """Start a new session and execute it until completed, paused or failed.

        Raises:
            WorkflowError: the session failed; its state is saved and resumable

        """
        if isinstance(workflow, str):
            workflow = self.load(workflow)
        if session_id is not None:
            key = SessionKey(workflow.name, session_id)
            try:
                self._states.load(key)
            except SessionNotFoundError:
                pass
            else:
                raise StateError(
                    f"Session {key} already exists",
                    hints=["Resume the existing session or pick another session id"],
                    session_key=str(key),
                    workflow=workflow.name,
                )

        state = self._states.create_initial_state(workflow, initial_variables, session_id)
        self._states.save(state)
        logger.info("Starting workflow %s (session %s)", workflow.name, state.key)

        token = token or CancellationToken()
        with self._interrupts(token, handle_signals):
            state = await self._executor.run(workflow, state, token)
        return WorkflowSession(key=state.key, workflow=workflow, state=state)

    async def resume(
        self,
        session_key: SessionKey | str,
        answer: Any = None,
        token: CancellationToken | None = None,
        handle_signals: bool = False,
    ) -> WorkflowSession:
        """Continue a saved session, optionally answering its pending prompt."""
        key = _as_key(session_key)
        state = self._states.load(key)
        workflow = self.load(state.name)
        token = token or CancellationToken()
        with self._interrupts(token, handle_signals):
            state = await self._executor.resume(workflow, state, answer, token)
        return WorkflowSession(key=state.key, workflow=workflow, state=state)

    def status(self, session_key: SessionKey | str) -> WorkflowState:
        return self._states.load(_as_key(session_key))

    def summary(self, session_key: SessionKey | str) -> WorkflowSummary:
        state = self.status(session_key)
        return summarize(self.load(state.name), state)

    def list_sessions(self, name: str | None = None) -> list[WorkflowState]:
        return self._states.list_sessions(name)

    def abandon(self, session_key: SessionKey | str) -> bool:
        """Delete a session's saved state."""
        key = _as_key(session_key)
        if not self._states.delete(key):
            raise SessionNotFoundError(f"State file not found for session {key}", session_key=str(key))
        return True

    def _interrupts(self, token: CancellationToken, enabled: bool):
        if not enabled:
            return contextlib.nullcontext(token)
        return forward_interrupts(token, self._executor.context.runner)
