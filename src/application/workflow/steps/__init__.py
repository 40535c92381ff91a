"""Step handlers - one per action kind, dispatched exhaustively on the step type."""

from typing import assert_never

from src.application.workflow.steps.ai_prompt import run_ai_prompt
from src.application.workflow.steps.base import (
    InputRequest,
    StepContext,
    StepResult,
    interpolate_step,
)
from src.application.workflow.steps.file_exists import run_check_file_exists
from src.application.workflow.steps.flow import coerce_answer, run_conditional, run_interactive, run_loop
from src.application.workflow.steps.git import build_git_commands, display_git_command, escape_commit_message, run_git
from src.application.workflow.steps.pr import run_pr
from src.application.workflow.steps.shell import run_shell
from src.application.workflow.steps.switch_model import run_switch_model
from src.domain.entities.workflow import (
    AiPromptStep,
    CheckFileExistsStep,
    ConditionalStep,
    GitStep,
    InteractiveStep,
    LoopStep,
    PrStep,
    ShellStep,
    SwitchModelStep,
    WorkflowStep,
)
from src.domain.entities.workflow_state import WorkflowState


async def execute_step(step: WorkflowStep, state: WorkflowState, ctx: StepContext) -> StepResult:
    """Run the handler for ``step``'s type."""
    match step:
        case SwitchModelStep():
            return await run_switch_model(step, state, ctx)
        case ConditionalStep():
            return await run_conditional(step, state, ctx)
        case LoopStep():
            return await run_loop(step, state, ctx)
        case InteractiveStep():
            return await run_interactive(step, state, ctx)
        case ShellStep():
            return await run_shell(step, state, ctx)
        case GitStep():
            return await run_git(step, state, ctx)
        case AiPromptStep():
            return await run_ai_prompt(step, state, ctx)
        case PrStep():
            return await run_pr(step, state, ctx)
        case CheckFileExistsStep():
            return await run_check_file_exists(step, state, ctx)
        case _:
            assert_never(step)


__all__ = [
    "InputRequest",
    "StepContext",
    "StepResult",
    "build_git_commands",
    "coerce_answer",
    "display_git_command",
    "escape_commit_message",
    "execute_step",
    "interpolate_step",
]
