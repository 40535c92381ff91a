"""Git steps: commit, push, pull, sync."""

import logging

from src.application.workflow.steps.base import StepContext, StepResult
from src.application.workflow.steps.shell import run_command, tail
from src.application.workflow.validator import is_safe_branch_name
from src.domain.entities.workflow import GitStep
from src.domain.entities.workflow_state import WorkflowState
from src.domain.errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_BASE_BRANCH = "main"


def escape_commit_message(message: str) -> str:
    """Escape backslashes and double quotes for display inside a double-quoted argument."""
    return message.replace("\\", "\\\\").replace('"', '\\"')


def display_git_command(argv: list[str]) -> str:
    """Readable form of a git argv; the message is shown quoted but never passed to a shell."""
    if argv[:3] == ["git", "commit", "-m"]:
        return f'git commit -m "{escape_commit_message(argv[3])}"'
    return " ".join(argv)


def build_git_commands(step: GitStep) -> list[list[str]]:
    """Argument vectors for a git step, run in order without a shell.

    Raises:
        ValidationError: commit without message, unsafe base branch

    """
    match step.action:
        case "commit":
            if step.message is None:
                raise ValidationError("Git commit action must have a message", step_id=step.id)
            if not step.message.strip():
                raise ValidationError("Git commit message cannot be empty", step_id=step.id)
            return [["git", "commit", "-m", step.message]]
        case "push":
            return [["git", "push"]]
        case "pull":
            return [["git", "pull"]]
        case "sync":
            base = step.base or DEFAULT_BASE_BRANCH
            if not is_safe_branch_name(base):
                raise ValidationError(
                    f"Invalid base branch for sync: {base!r}",
                    hints=["Use a plain branch name such as main or develop"],
                    step_id=step.id,
                )
            return [["git", "fetch", "origin", base], ["git", "reset", "--hard", f"origin/{base}"]]
    raise ValidationError(f"Unknown git action: {step.action}", step_id=step.id)


async def run_git(step: GitStep, state: WorkflowState, ctx: StepContext) -> StepResult:
    commands = build_git_commands(step)
    stdout: list[str] = []
    stderr: list[str] = []
    exit_code = 0
    for argv in commands:
        result = await run_command(ctx, argv, step_id=step.id, label="Git command")
        stdout.append(result.stdout)
        stderr.append(result.stderr)
        exit_code = result.exit_code
        if not result.ok:
            break

    output = {
        "action": step.action,
        "commands": [display_git_command(argv) for argv in commands],
        "stdout": "".join(stdout),
        "stderr": "".join(stderr),
        "exitCode": exit_code,
    }
    if exit_code != 0:
        detail = tail(output["stderr"] or output["stdout"])
        logger.warning("git %s failed (exit %d)", step.action, exit_code)
        return StepResult(
            output=output,
            success=False,
            error=f"Git command failed: git {step.action} exited with {exit_code}: {detail}".rstrip(": "),
        )
    return StepResult(output=output)
