"""Workflow state manager - persists sessions as JSON files, one per session."""

import json
import logging
import re
import uuid
from pathlib import Path
from typing import Any

import pydantic

from src.domain.entities.workflow import Workflow
from src.domain.entities.workflow_state import SessionKey, WorkflowState, safe_name
from src.domain.errors import SessionNotFoundError, StateError
from src.domain.ports.store import DurableStore
from src.infrastructure.persistence.file_store import LocalFileStore

logger = logging.getLogger(__name__)

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,128}$")
STATE_SUFFIX = ".json"


def new_session_id() -> str:
    return uuid.uuid4().hex[:12]


class StateManager:
    """Save / load / list / delete WorkflowState.

    Layout: ``<state dir>/<safe workflow name>/<session id>.json``.
    """

    def __init__(self, store: DurableStore | str | Path) -> None:
        if isinstance(store, (str, Path)):
            store = LocalFileStore(store)
        self._store = store

    @staticmethod
    def key_path(key: SessionKey) -> str:
        if not _SESSION_ID_RE.match(key.session_id):
            raise StateError(
                f"Invalid session id: {key.session_id!r}",
                hints=["Session ids contain only letters, digits, '-' and '_'"],
                session_key=str(key),
            )
        return f"{safe_name(key.workflow)}/{key.session_id}{STATE_SUFFIX}"

    def create_initial_state(
        self,
        workflow: Workflow,
        variables: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> WorkflowState:
        """Fresh pending state; workflow defaults sit under the caller's variables."""
        state = WorkflowState(
            name=workflow.name,
            session_id=session_id or new_session_id(),
            current_step=workflow.steps[0].id,
            variables={**workflow.variables, **(variables or {})},
        )
        # Validate the id early, before any step runs
        self.key_path(state.key)
        return state

    def save(self, state: WorkflowState) -> None:
        path = self.key_path(state.key)
        data = state.model_dump(mode="json", by_alias=True)
        self._store.write_bytes_atomic(path, json.dumps(data, indent=2, ensure_ascii=False).encode("utf-8"))
        logger.debug("State saved: %s (step=%s)", state.key, state.current_step)

    def load(self, key: SessionKey) -> WorkflowState:
        """Load a session.

        Raises:
            StateError: missing file, unreadable JSON, or a document that does not
                match the state schema. A fresh state is never substituted.

        """
        path = self.key_path(key)
        try:
            raw = self._store.read_bytes(path)
        except FileNotFoundError as e:
            raise SessionNotFoundError(
                f"State file not found for session {key}",
                session_key=str(key),
                workflow=key.workflow,
                cause=e,
            ) from e
        except OSError as e:
            raise StateError(f"Cannot read state file for session {key}: {e}", session_key=str(key), cause=e) from e

        try:
            data = json.loads(raw.decode("utf-8"))
            state = WorkflowState.model_validate(data)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StateError(
                f"Corrupt state file for session {key}: {e}",
                session_key=str(key),
                workflow=key.workflow,
                cause=e,
            ) from e
        except pydantic.ValidationError as e:
            raise StateError(
                f"Corrupt state file for session {key}: does not match the state schema "
                f"({e.error_count()} errors)",
                session_key=str(key),
                workflow=key.workflow,
                cause=e,
            ) from e

        if state.session_id != key.session_id or safe_name(state.name) != safe_name(key.workflow):
            raise StateError(
                f"Corrupt state file for session {key}: file holds session {state.key}",
                session_key=str(key),
                workflow=key.workflow,
            )
        return state

    def delete(self, key: SessionKey) -> bool:
        deleted = self._store.delete(self.key_path(key))
        if deleted:
            logger.info("Deleted session %s", key)
        return deleted

    def list_sessions(self, workflow: str | None = None) -> list[WorkflowState]:
        """Saved sessions, most recently updated first. Corrupt files are skipped."""
        prefix = safe_name(workflow) if workflow else ""
        states: list[WorkflowState] = []
        for path in self._store.list_keys(prefix=prefix, suffix=STATE_SUFFIX):
            try:
                data = json.loads(self._store.read_bytes(path).decode("utf-8"))
                states.append(WorkflowState.model_validate(data))
            except (OSError, UnicodeDecodeError, json.JSONDecodeError, pydantic.ValidationError) as e:
                logger.warning("Skipping unreadable state file %s: %s", path, e)
        if workflow:
            states = [s for s in states if s.name == workflow]
        states.sort(key=lambda s: s.updated_at, reverse=True)
        return states
