"""Workflow error taxonomy - categorized errors carrying remediation hints."""

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for classification and reporting."""

    VALIDATION = "validation"
    EXECUTION = "execution"
    PERMISSION = "permission"
    NETWORK = "network"
    TIMEOUT = "timeout"
    STATE = "state"
    UNKNOWN = "unknown"


class WorkflowError(Exception):
    """Base workflow error.

    Carries a category, an ordered list of human-readable hints and, optionally,
    the original exception plus the workflow / step / session it happened in.
    """

    default_category = ErrorCategory.UNKNOWN
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        hints: list[str] | None = None,
        cause: BaseException | None = None,
        step_id: str | None = None,
        workflow: str | None = None,
        session_key: str | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.hints = list(hints or [])
        self.cause = cause
        self.step_id = step_id
        self.workflow = workflow
        self.session_key = session_key
        self.retryable = self.default_retryable if retryable is None else retryable
        if cause is not None:
            self.__cause__ = cause

    def with_context(
        self,
        *,
        step_id: str | None = None,
        workflow: str | None = None,
        session_key: str | None = None,
    ) -> "WorkflowError":
        """Fill in missing context fields (never overwrites existing ones)."""
        self.step_id = self.step_id or step_id
        self.workflow = self.workflow or workflow
        self.session_key = self.session_key or session_key
        return self

    def add_hints(self, hints: list[str]) -> "WorkflowError":
        """Append hints that are not already present."""
        for hint in hints:
            if hint not in self.hints:
                self.hints.append(hint)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serializable summary (persisted as WorkflowState.lastError)."""
        return {
            "type": type(self).__name__,
            "category": self.category.value,
            "message": self.message,
            "hints": list(self.hints),
            "step": self.step_id,
            "workflow": self.workflow,
            "session": self.session_key,
            "retryable": self.retryable,
        }

    def full_message(self) -> str:
        """Format the error with its context and numbered hints."""
        lines = [f"Error: {self.message}"]
        if self.workflow:
            lines.append(f"Workflow: {self.workflow}")
        if self.step_id:
            lines.append(f"Step: {self.step_id}")
        lines.append(f"Category: {self.category.value}")
        if self.hints:
            lines.append("Suggestions:")
            lines.extend(f"  {i}. {hint}" for i, hint in enumerate(self.hints, 1))
        if self.retryable and self.session_key:
            lines.append(f"This error is retryable. Resume with session {self.session_key}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.message


class ValidationError(WorkflowError):
    """Malformed workflow definition or step. Fatal at load time."""

    default_category = ErrorCategory.VALIDATION

    def __init__(self, message: str, *, problems: list[Any] | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.problems = list(problems or [])


class ExecutionError(WorkflowError):
    """A step's underlying operation failed (non-zero exit, collaborator rejection)."""

    default_category = ErrorCategory.EXECUTION
    default_retryable = True


class StateError(WorkflowError):
    """Persisted state is missing, corrupt or inconsistent with its workflow."""

    default_category = ErrorCategory.STATE


class LoopBoundError(WorkflowError):
    """Iteration cap exceeded."""

    default_category = ErrorCategory.EXECUTION

    def __init__(self, message: str, *, limit: int, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.limit = limit


class UnknownStepError(StateError):
    """Execution pointer or redirect target names a nonexistent step id."""


class WorkflowNotFoundError(WorkflowError):
    """No workflow with the given name in the search path."""

    default_category = ErrorCategory.VALIDATION


class SessionNotFoundError(StateError):
    """No persisted state for the given session key."""
