"""Control-flow steps: conditional, loop, interactive."""

import re
from typing import Any

from src.application.workflow.steps.base import InputRequest, StepContext, StepResult
from src.domain.entities.workflow import ConditionalStep, InteractiveStep, LoopStep
from src.domain.entities.workflow_state import WorkflowState
from src.domain.errors import ValidationError
from src.domain.services.condition_evaluator import evaluate_condition


async def run_conditional(step: ConditionalStep, state: WorkflowState, ctx: StepContext) -> StepResult:
    context = {
        **state.variables,
        "iterationCount": state.iteration_count,
        "stepCount": len(state.history),
        "currentStep": state.current_step,
    }
    result = evaluate_condition(step.check, context)
    target = step.on_true if result else step.on_false
    return StepResult(
        output={"condition": step.check, "result": result, "nextStep": target},
        next_step=target,
    )


async def run_loop(step: LoopStep, state: WorkflowState, ctx: StepContext) -> StepResult:
    context = {**state.variables, "iteration": state.iteration_count}
    should_loop = evaluate_condition(step.condition, context)
    return StepResult(
        output={
            "condition": step.condition,
            "shouldLoop": should_loop,
            "targetStep": step.to,
            "iteration": state.iteration_count,
        },
        next_step=step.to if should_loop else None,
    )


async def run_interactive(step: InteractiveStep, state: WorkflowState, ctx: StepContext) -> StepResult:
    """Never reads input; asks the executor to suspend the session."""
    request = InputRequest.for_step(step)
    return StepResult(output={"waitingForInput": True, **request.to_dict()}, input_request=request)


_YES = ("y", "yes", "true", "1", "ok", "approve", "approved")
_NO = ("n", "no", "false", "0", "reject", "rejected")


def coerce_answer(step: InteractiveStep, answer: Any) -> Any:
    """Validate a human answer for ``step`` and convert it to the stored value.

    Raises:
        ValidationError: answer not among choices, not matching the pattern,
            or not a yes/no for a confirm prompt

    """
    if answer is None or (isinstance(answer, str) and not answer.strip()):
        answer = step.default_value if step.default_value is not None else ""

    if step.input_type == "confirm":
        if isinstance(answer, bool):
            return answer
        text = str(answer).strip().lower()
        if text in _YES:
            return True
        if text in _NO:
            return False
        raise ValidationError(
            f"Invalid answer for step {step.id}: expected yes or no, got {answer!r}",
            step_id=step.id,
        )

    text = answer if isinstance(answer, str) else str(answer)
    if step.input_type != "multiline":
        text = text.strip()
    if step.input_type == "choice" and step.choices and text not in step.choices:
        raise ValidationError(
            f"Invalid answer for step {step.id}: {text!r} is not one of {', '.join(step.choices)}",
            step_id=step.id,
        )
    if step.validation_pattern and not re.search(step.validation_pattern, text):
        raise ValidationError(
            f"Invalid answer for step {step.id}: does not match {step.validation_pattern!r}",
            step_id=step.id,
        )
    return text
