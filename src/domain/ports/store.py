"""Durable Store Port - byte-level persistence primitives."""

from typing import Any, Protocol

from src.domain.entities.workflow import Workflow
from src.domain.entities.workflow_state import SessionKey, WorkflowState


class DurableStore(Protocol):
    """Byte storage addressed by relative keys (``"workflow/session.json"``)."""

    def read_bytes(self, key: str) -> bytes:
        """Read whole object. Raises FileNotFoundError when absent."""
        ...

    def write_bytes_atomic(self, key: str, data: bytes) -> None:
        """Write to a temporary location, then atomically rename over ``key``."""
        ...

    def delete(self, key: str) -> bool:
        """Delete object. Returns True if it existed."""
        ...

    def list_keys(self, prefix: str = "", suffix: str = "") -> list[str]:
        """Keys under ``prefix`` ending with ``suffix``."""
        ...


class StateRepositoryPort(Protocol):
    """Session state persistence consumed by the executor and manager."""

    def save(self, state: WorkflowState) -> None:
        """Persist atomically."""
        ...

    def load(self, key: SessionKey) -> WorkflowState:
        """Load a session. Raises StateError when missing or corrupt."""
        ...

    def delete(self, key: SessionKey) -> bool:
        ...

    def list_sessions(self, workflow: str | None = None) -> list[WorkflowState]:
        ...

    def create_initial_state(
        self,
        workflow: Workflow,
        variables: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> WorkflowState:
        """Fresh pending state for a new session (not yet saved)."""
        ...
