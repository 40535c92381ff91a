"""Step executor - runs a session as a persisted state machine.

pending -> running -> {paused, completed, failed}; paused and failed sessions
re-enter through ``resume``. State is saved after every step.
"""

import logging
from typing import Any

from src.application.workflow.cancellation import CancellationToken
from src.application.workflow.error_classifier import classify_error
from src.application.workflow.steps import (
    StepContext,
    StepResult,
    coerce_answer,
    execute_step,
    interpolate_step,
)
from src.domain.entities.workflow import InteractiveStep, LoopStep, Workflow, WorkflowStep
from src.domain.entities.workflow_state import StepExecution, WorkflowState
from src.domain.errors import (
    ExecutionError,
    LoopBoundError,
    StateError,
    UnknownStepError,
    WorkflowError,
)
from src.domain.ports.config import DEFAULT_MAX_ITERATIONS
from src.domain.ports.store import StateRepositoryPort

logger = logging.getLogger(__name__)

MASKED_ANSWER = "********"


class StepExecutor:
    """Drives one session at a time, one step at a time."""

    def __init__(
        self,
        states: StateRepositoryPort,
        context: StepContext | None = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> None:
        self._states = states
        self._context = context or StepContext()
        self._max_iterations = max_iterations

    @property
    def context(self) -> StepContext:
        return self._context

    async def run(
        self,
        workflow: Workflow,
        state: WorkflowState,
        token: CancellationToken | None = None,
    ) -> WorkflowState:
        """Execute from ``state.current_step`` until completed, paused or failed.

        Raises:
            WorkflowError: after the failed state has been persisted

        """
        if state.completed:
            return state
        state.paused = False

        while not state.completed:
            if token is not None and token.is_cancelled:
                state.paused = True
                state.touch()
                self._states.save(state)
                logger.info("Session %s cancelled at step %s (%s)", state.key, state.current_step, token.reason)
                return state

            step = workflow.get_step(state.current_step) if state.current_step else None
            if step is None:
                raise self._fail(
                    state,
                    UnknownStepError(
                        f"Step not found: {state.current_step!r} is not a step of workflow {workflow.name}",
                        step_id=state.current_step,
                    ),
                )

            await self._run_step(workflow, state, step, token)
            if state.paused:
                return state

        logger.info("Workflow %s completed (session %s)", workflow.name, state.key)
        return state

    async def resume(
        self,
        workflow: Workflow,
        state: WorkflowState,
        answer: Any = None,
        token: CancellationToken | None = None,
    ) -> WorkflowState:
        """Continue a paused or failed session.

        With an answer, a session paused at an interactive step stores it and moves
        past that step. Without one, the current step runs again.
        """
        if state.completed:
            return state

        if answer is not None:
            step = workflow.get_step(state.current_step) if state.current_step else None
            if not isinstance(step, InteractiveStep) or not state.paused:
                raise StateError(
                    f"Session {state.key} is not waiting for input",
                    hints=["Resume without an answer to continue the session"],
                    session_key=str(state.key),
                    workflow=workflow.name,
                )
            value = coerce_answer(step, answer)
            state.variables[step.answer_variable] = value
            shown = MASKED_ANSWER if step.input_type == "password" else value
            state.record(
                StepExecution(
                    step_id=step.id,
                    action=step.action,
                    success=True,
                    output={"answer": shown, "variable": step.answer_variable},
                )
            )
            self._move_to(state, workflow.next_step_id(step.id))

        state.failed = False
        state.last_error = None
        state.paused = False
        state.touch()
        self._states.save(state)
        logger.info("Resuming session %s at step %s", state.key, state.current_step)
        return await self.run(workflow, state, token)

    async def _run_step(
        self,
        workflow: Workflow,
        state: WorkflowState,
        step: WorkflowStep,
        token: CancellationToken | None = None,
    ) -> None:
        logger.info("Step %s (%s) started [session %s]", step.id, step.action, state.key)
        resolved = interpolate_step(step, state.variables)
        result: StepResult | None = None
        try:
            result = await execute_step(resolved, state, self._context)
            if not result.success:
                raise ExecutionError(result.error or f"Step {step.id} failed", step_id=step.id)
            target = self._next_step(workflow, state, step, result)
        except Exception as e:
            error = classify_error(e, step_id=step.id, workflow=workflow.name, session_key=str(state.key))
            output = None
            if result is not None:
                output = result.output
                state.variables.update(result.variables)
            state.record(
                StepExecution(step_id=step.id, action=step.action, success=False, output=output, error=error.message)
            )
            if token is not None and token.is_cancelled:
                # Interrupted mid-step: the step reruns on resume
                state.paused = True
                state.touch()
                self._states.save(state)
                logger.info("Session %s cancelled during step %s (%s)", state.key, step.id, token.reason)
                return
            failure = self._fail(state, error)
            if failure is e:
                raise
            raise failure from e

        state.variables.update(result.variables)
        state.record(StepExecution(step_id=step.id, action=step.action, success=True, output=result.output))

        if result.input_request is not None:
            state.paused = True
            self._states.save(state)
            logger.info("Session %s paused for input at step %s", state.key, step.id)
            return

        self._move_to(state, target)
        self._states.save(state)
        logger.info("Step %s finished -> %s", step.id, state.current_step or "end")

    def _next_step(
        self,
        workflow: Workflow,
        state: WorkflowState,
        step: WorkflowStep,
        result: StepResult,
    ) -> str | None:
        """Where to go after ``step``; counts backward redirects against the cap."""
        if result.next_step is None:
            return workflow.next_step_id(step.id)

        target_index = workflow.index_of(result.next_step)
        if target_index < 0:
            raise UnknownStepError(
                f"Step not found: {step.id} redirects to unknown step {result.next_step!r}",
                step_id=step.id,
            )
        if target_index <= workflow.index_of(step.id):
            limit = self._max_iterations
            if isinstance(step, LoopStep) and step.max_iterations:
                limit = min(limit, step.max_iterations)
            if state.iteration_count + 1 > limit:
                raise LoopBoundError(
                    f"Max iterations exceeded ({limit}) at step {step.id}",
                    limit=limit,
                    step_id=step.id,
                )
            state.iteration_count += 1
        return result.next_step

    @staticmethod
    def _move_to(state: WorkflowState, target: str | None) -> None:
        if target is None:
            state.completed = True
            state.current_step = None
        else:
            state.current_step = target
        state.touch()

    def _fail(self, state: WorkflowState, error: WorkflowError) -> WorkflowError:
        error = classify_error(error, workflow=state.name, session_key=str(state.key))
        state.failed = True
        state.last_error = error.to_dict()
        state.touch()
        self._states.save(state)
        logger.error("Session %s failed at step %s: %s", state.key, state.current_step, error.message)
        return error
