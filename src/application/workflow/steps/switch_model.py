"""switch-model step."""

import logging

from src.application.workflow.steps.base import StepContext, StepResult
from src.domain.entities.workflow import SwitchModelStep
from src.domain.entities.workflow_state import WorkflowState
from src.domain.errors import ExecutionError, ValidationError
from src.domain.ports.agent import ProviderConfig

logger = logging.getLogger(__name__)


async def run_switch_model(step: SwitchModelStep, state: WorkflowState, ctx: StepContext) -> StepResult:
    if not step.model or not step.model.strip():
        raise ValidationError(
            f"Switch-model step {step.id} must specify a model",
            hints=["Add `model: <name>` or `model: provider:name`"],
            step_id=step.id,
        )
    if ctx.agent is None:
        raise ExecutionError("Agent not available for model switch", step_id=step.id)

    previous = ctx.agent.provider
    new = ProviderConfig.parse(step.model.strip(), default_provider=previous.name)
    ctx.agent.set_provider(new)
    ctx.available_models.add(str(new))
    logger.info("Switched model %s -> %s", previous, new)

    return StepResult(
        output={
            "previousProvider": previous.model_dump(),
            "newProvider": new.model_dump(),
        }
    )
