"""Execution summary - progress data for whatever renders a session."""

from pydantic import BaseModel

from src.domain.entities.workflow import Workflow
from src.domain.entities.workflow_state import WorkflowState


class StepStatus(BaseModel):
    id: str
    action: str
    description: str | None = None
    status: str  # pending | completed | failed | paused
    runs: int = 0


class WorkflowSummary(BaseModel):
    """Snapshot of how far a session got."""

    workflow: str
    session: str
    status: str
    total_steps: int
    completed_steps: int
    percent: float
    current_step: StepStatus | None = None
    failed_step: str | None = None
    error: str | None = None
    iteration_count: int = 0
    steps: list[StepStatus] = []


def summarize(workflow: Workflow, state: WorkflowState) -> WorkflowSummary:
    """Build a summary from the session history."""
    runs: dict[str, int] = {}
    last_ok: dict[str, bool] = {}
    for execution in state.history:
        runs[execution.step_id] = runs.get(execution.step_id, 0) + 1
        last_ok[execution.step_id] = execution.success

    failed_step = state.current_step if state.failed else None
    paused_step = state.current_step if state.paused else None

    steps: list[StepStatus] = []
    for step in workflow.steps:
        if step.id == failed_step:
            status = "failed"
        elif step.id == paused_step:
            status = "paused"
        elif last_ok.get(step.id):
            status = "completed"
        else:
            status = "pending"
        steps.append(
            StepStatus(
                id=step.id,
                action=step.action,
                description=step.description,
                status=status,
                runs=runs.get(step.id, 0),
            )
        )

    done = sum(1 for s in steps if s.status == "completed")
    total = len(steps)
    current = next((s for s in steps if s.id == state.current_step), None)
    error = state.last_error.get("message") if state.last_error else None
    return WorkflowSummary(
        workflow=workflow.name,
        session=str(state.key),
        status=state.status.value,
        total_steps=total,
        completed_steps=done,
        percent=round(100.0 * done / total, 1) if total else 100.0,
        current_step=current,
        failed_step=failed_step,
        error=error,
        iteration_count=state.iteration_count,
        steps=steps,
    )
