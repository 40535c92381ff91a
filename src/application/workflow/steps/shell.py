"""shell step - run a command through the process runner."""

import logging
from collections.abc import Sequence

from src.application.workflow.steps.base import StepContext, StepResult
from src.domain.entities.workflow import ShellStep
from src.domain.entities.workflow_state import WorkflowState
from src.domain.errors import ErrorCategory, ExecutionError
from src.domain.ports.process import ProcessResult, ProcessSpawnError, ProcessTimeoutError

logger = logging.getLogger(__name__)

MAX_ERROR_OUTPUT = 2000


def tail(text: str, limit: int = MAX_ERROR_OUTPUT) -> str:
    text = text.strip()
    return text if len(text) <= limit else "..." + text[-limit:]


async def run_command(
    ctx: StepContext,
    command: str | Sequence[str],
    *,
    step_id: str,
    label: str,
    timeout: float | None = None,
) -> ProcessResult:
    """Run ``command``; spawn failures and timeouts become ExecutionError."""
    if ctx.runner is None:
        raise ExecutionError(f"{label} failed: no process runner configured", step_id=step_id)
    timeout = timeout or ctx.shell_timeout
    logger.debug("Running %s command: %s", label, command)
    try:
        return await ctx.runner.execute(command, cwd=ctx.cwd, timeout=timeout)
    except ProcessTimeoutError as e:
        raise ExecutionError(
            f"{label} timed out after {timeout:g}s: {command}",
            category=ErrorCategory.TIMEOUT,
            step_id=step_id,
            cause=e,
        ) from e
    except ProcessSpawnError as e:
        raise ExecutionError(
            f"{label} failed to start: {e}",
            step_id=step_id,
            retryable=False,
            cause=e,
        ) from e


async def run_shell(step: ShellStep, state: WorkflowState, ctx: StepContext) -> StepResult:
    result = await run_command(ctx, step.command, step_id=step.id, label="Shell command", timeout=step.timeout)
    output = {
        "command": step.command,
        "stdout": result.stdout,
        "stderr": result.stderr,
        "exitCode": result.exit_code,
    }
    exports = {
        f"{step.id}_stdout": result.stdout.strip(),
        f"{step.id}_stderr": result.stderr.strip(),
        f"{step.id}_exitCode": result.exit_code,
    }
    if not result.ok:
        detail = tail(result.stderr or result.stdout)
        return StepResult(
            output=output,
            success=False,
            error=f"Shell command failed with exit code {result.exit_code}: {detail}".rstrip(": "),
            variables=exports,
        )
    return StepResult(output=output, variables=exports)
