"""ai-prompt step - send a prompt to the conversational agent."""

import logging

from src.application.workflow.steps.base import StepContext, StepResult
from src.domain.entities.workflow import AiPromptStep
from src.domain.entities.workflow_state import WorkflowState
from src.domain.errors import ErrorCategory, ExecutionError
from src.domain.ports.agent import AgentTimeoutError, AgentUnavailableError, ProviderConfig

logger = logging.getLogger(__name__)


async def run_ai_prompt(step: AiPromptStep, state: WorkflowState, ctx: StepContext) -> StepResult:
    agent = ctx.agent
    if agent is None:
        raise ExecutionError("Agent not available for AI prompt", step_id=step.id, retryable=False)

    previous = agent.provider
    override = None
    if step.model:
        override = ProviderConfig.parse(step.model, default_provider=previous.name)
        if override != previous:
            agent.set_provider(override)
            ctx.available_models.add(str(override))

    try:
        response = await agent.chat(step.prompt)
    except AgentTimeoutError as e:
        raise ExecutionError(
            f"AI generation timed out: {e}",
            category=ErrorCategory.TIMEOUT,
            step_id=step.id,
            cause=e,
        ) from e
    except AgentUnavailableError as e:
        raise ExecutionError(
            f"Agent not available: {e}",
            category=ErrorCategory.NETWORK,
            step_id=step.id,
            cause=e,
        ) from e
    finally:
        # The per-step model applies to this prompt only
        if override is not None and override != previous:
            agent.set_provider(previous)

    logger.debug("AI prompt %s answered (%d chars)", step.id, len(response))
    model = str(override or previous)
    return StepResult(
        output={"prompt": step.prompt, "response": response, "model": model},
        variables={
            f"{step.id}_response": response,
            f"{step.id}_metadata": {"model": model, "prompt": step.prompt},
        },
    )
