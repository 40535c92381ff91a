"""check-file-exists step."""

from pathlib import Path

from src.application.workflow.steps.base import StepContext, StepResult
from src.domain.entities.workflow import CheckFileExistsStep
from src.domain.entities.workflow_state import WorkflowState


async def run_check_file_exists(step: CheckFileExistsStep, state: WorkflowState, ctx: StepContext) -> StepResult:
    path = Path(step.file).expanduser()
    if not path.is_absolute() and ctx.cwd:
        path = Path(ctx.cwd) / path
    exists = path.exists()
    return StepResult(
        output={"file": step.file, "exists": exists},
        variables={f"{step.id}_exists": exists, "fileExists": exists},
    )
