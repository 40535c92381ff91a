"""Error classifier - turns raw failures into categorized WorkflowErrors with hints."""

import asyncio
import logging
from typing import Any

import httpx

from src.domain.errors import (
    ErrorCategory,
    ExecutionError,
    ValidationError,
    WorkflowError,
)

logger = logging.getLogger(__name__)

# Message fragment -> (hints, retryable). First matching fragment wins.
ERROR_GUIDE: dict[str, tuple[list[str], bool]] = {
    "workflow not found": (
        [
            "Check the workflow name spelling",
            "List available workflows to see what is installed",
            "Ensure workflow files exist in ~/.codi/workflows/, .codi/workflows/ or ./workflows/",
        ],
        False,
    ),
    "invalid yaml": (
        [
            "Check YAML syntax: indentation and missing colons are the usual suspects",
            "Quote strings that contain special characters such as ':' or '#'",
            "Validate the workflow to get the full list of problems",
        ],
        False,
    ),
    "step not found": (
        [
            "Verify the step id exists in the workflow",
            "Check for typos in onTrue, onFalse and to references",
            "If the workflow file was edited after the session started, abandon the session and run it again",
        ],
        False,
    ),
    # Before the generic git entry: lookup takes the first fragment found
    "git push exited": (
        [
            "Check remote connectivity and credentials",
            "Pull and rebase if the remote has new commits",
        ],
        True,
    ),
    "git command failed": (
        [
            "Ensure git is installed and accessible",
            "Check remote connectivity with git remote -v and git fetch",
            "Run the git command manually to see the full error",
        ],
        True,
    ),
    "shell command failed": (
        [
            "Review the command for syntax errors",
            "Ensure all required tools are installed",
            "Run the command in a regular terminal to reproduce",
        ],
        True,
    ),
    "state file not found": (
        [
            "The session may never have been started",
            "List saved sessions to find the right session id",
            "Run the workflow again to start a new session",
        ],
        False,
    ),
    "corrupt state": (
        [
            "Inspect the state file by hand",
            "Abandon the session and run the workflow again if the file cannot be repaired",
        ],
        False,
    ),
    "max iterations exceeded": (
        [
            "Review the loop condition, it may never become false",
            "Raise workflow.max_iterations in the configuration if the loop is legitimately long",
            "Set maxIterations on the loop step to bound it explicitly",
        ],
        False,
    ),
    "timed out": (
        [
            "Check whether the process or service is hung",
            "Increase the timeout for the step",
            "Break long-running work into smaller steps",
        ],
        True,
    ),
    "permission denied": (
        [
            "Check file and directory permissions",
            "Check the access token's scopes for the repository",
        ],
        False,
    ),
    "ai generation failed": (
        [
            "Verify the AI provider is running and reachable",
            "Try a simpler prompt to rule out model issues",
            "Switch to a different model",
        ],
        True,
    ),
    "model not found": (
        [
            "Check the model name for your provider",
            "Pull the model first (e.g. ollama pull <model>)",
        ],
        True,
    ),
    "agent not available": (
        [
            "Ensure an AI provider is configured and running",
            "Check llm.provider and the provider host in the configuration",
        ],
        True,
    ),
    "pull request": (
        [
            "Check that the head branch is pushed to the remote",
            "Check the repository name and the GitHub token",
        ],
        True,
    ),
}

DEFAULT_HINTS = [
    "Review the workflow configuration",
    "Inspect the session history for the failing step",
]

_CATEGORY_KEYWORDS: list[tuple[ErrorCategory, tuple[str, ...]]] = [
    (ErrorCategory.VALIDATION, ("validation", "invalid", "must have", "must specify")),
    (ErrorCategory.PERMISSION, ("permission", "denied", "forbidden", "unauthorized")),
    (ErrorCategory.TIMEOUT, ("timeout", "timed out")),
    (ErrorCategory.NETWORK, ("network", "connection", "unreachable")),
    (ErrorCategory.STATE, ("state file", "corrupt state")),
]


def hints_for(message: str) -> tuple[list[str], bool] | None:
    """Look up guide hints for an error message."""
    lowered = message.lower()
    for fragment, (hints, retryable) in ERROR_GUIDE.items():
        if fragment in lowered:
            return list(hints), retryable
    return None


def category_for(message: str) -> ErrorCategory:
    """Guess a category from message keywords."""
    lowered = message.lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(k in lowered for k in keywords):
            return category
    return ErrorCategory.EXECUTION


def _category_for_exception(exc: BaseException) -> ErrorCategory | None:
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException)):
        return ErrorCategory.TIMEOUT
    if isinstance(exc, PermissionError):
        return ErrorCategory.PERMISSION
    if isinstance(exc, (ConnectionError, httpx.TransportError)):
        return ErrorCategory.NETWORK
    if isinstance(exc, OSError):
        return ErrorCategory.EXECUTION
    return None


def classify_error(
    exc: BaseException,
    *,
    step_id: str | None = None,
    workflow: str | None = None,
    session_key: str | None = None,
) -> WorkflowError:
    """Convert any exception into a WorkflowError carrying hints.

    WorkflowErrors pass through (gaining context and guide hints when they have none).
    """
    if isinstance(exc, WorkflowError):
        error = exc
    else:
        message = str(exc) or type(exc).__name__
        category = _category_for_exception(exc) or category_for(message)
        cls = ValidationError if category == ErrorCategory.VALIDATION else ExecutionError
        if category in (ErrorCategory.UNKNOWN, ErrorCategory.STATE):
            cls = WorkflowError
        error = cls(message, category=category, cause=exc)

    if not error.hints:
        guide = hints_for(error.message)
        if guide:
            hints, retryable = guide
            error.add_hints(hints)
            if not isinstance(exc, WorkflowError):
                error.retryable = retryable
        else:
            error.add_hints(DEFAULT_HINTS)

    return error.with_context(step_id=step_id, workflow=workflow, session_key=session_key)


def get_workflow_hints(raw: Any) -> list[str]:
    """Informational hints about what a workflow definition will do."""
    if not isinstance(raw, dict):
        return []
    steps = raw.get("steps") if isinstance(raw.get("steps"), list) else []
    actions = {s.get("action") for s in steps if isinstance(s, dict)}
    hints: list[str] = []
    if raw.get("interactive") or "interactive" in actions:
        hints.append("This workflow requires interactive input - be ready to answer prompts")
    if raw.get("persistent"):
        hints.append("This workflow saves state - sessions can be resumed")
    if "loop" in actions:
        hints.append("This workflow contains loops - ensure conditions are satisfiable")
    if "conditional" in actions:
        hints.append("This workflow has conditional branches - review all paths")
    if "switch-model" in actions:
        hints.append("This workflow switches models - ensure all models are available")
    if actions & {"commit", "push", "sync", "merge-pr"}:
        hints.append("This workflow modifies git - ensure your working tree is clean")
    return hints
