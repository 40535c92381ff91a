"""Tests for execution summaries."""

from src.application.workflow.parser import load_workflow
from src.application.workflow.summary import summarize
from src.domain.entities.workflow_state import StepExecution, WorkflowState

WORKFLOW = load_workflow(
    {
        "name": "ci",
        "steps": [
            {"id": "lint", "action": "shell", "command": "ruff check ."},
            {"id": "test", "action": "shell", "command": "pytest"},
            {"id": "push", "action": "push", "description": "Publish"},
        ],
    }
)


def _state(**kwargs):
    return WorkflowState(name="ci", session_id="abc", **kwargs)


class TestSummarize:
    def test_pending(self):
        summary = summarize(WORKFLOW, _state(current_step="lint"))
        assert summary.status == "pending"
        assert summary.completed_steps == 0
        assert summary.percent == 0.0
        assert [s.status for s in summary.steps] == ["pending"] * 3

    def test_failed_step(self):
        state = _state(
            current_step="test",
            failed=True,
            last_error={"message": "Shell command failed with exit code 1"},
            history=[
                StepExecution(step_id="lint", success=True),
                StepExecution(step_id="test", success=False, error="boom"),
            ],
        )
        summary = summarize(WORKFLOW, state)
        assert summary.status == "failed"
        assert summary.failed_step == "test"
        assert summary.error == "Shell command failed with exit code 1"
        assert [s.status for s in summary.steps] == ["completed", "failed", "pending"]
        assert summary.percent == 33.3
        assert summary.current_step.id == "test"
        assert summary.session == "ci/abc"

    def test_runs_counted(self):
        state = _state(
            current_step=None,
            completed=True,
            history=[StepExecution(step_id=s, success=True) for s in ("lint", "test", "lint", "test", "push")],
        )
        summary = summarize(WORKFLOW, state)
        assert summary.percent == 100.0
        assert summary.current_step is None
        assert [s.runs for s in summary.steps] == [2, 2, 1]
        assert summary.steps[2].description == "Publish"
