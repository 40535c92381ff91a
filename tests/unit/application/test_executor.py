"""Tests for StepExecutor - the persisted step state machine."""

import asyncio
import sys

import pytest

from src.application.workflow.cancellation import CancellationToken
from src.application.workflow.executor import MASKED_ANSWER, StepExecutor
from src.application.workflow.parser import load_workflow
from src.application.workflow.steps import StepContext
from src.domain.entities.workflow_state import SessionStatus
from src.domain.errors import (
    ExecutionError,
    LoopBoundError,
    StateError,
    UnknownStepError,
    ValidationError,
)
from src.domain.ports.process import ProcessResult
from src.infrastructure.services.process_runner import ProcessRunner


def _workflow(*steps, **extra):
    return load_workflow({"name": "demo", "steps": list(steps), **extra})


SWITCH_LOOP = (
    {"id": "s1", "action": "switch-model", "model": "llama3.2"},
    {"id": "s2", "action": "conditional", "check": "x==1", "onTrue": "s1"},
)


class TestRun:
    """Straight-line execution."""

    @pytest.mark.asyncio()
    async def test_runs_to_completion(self, executor, states, runner):
        runner.on("build", ProcessResult(stdout="built\n"))
        workflow = _workflow(
            {"id": "build", "action": "shell", "command": "make build"},
            {"id": "ask", "action": "ai-prompt", "prompt": "Summarize {{build_stdout}}"},
        )
        state = states.create_initial_state(workflow)

        result = await executor.run(workflow, state)

        assert result.completed
        assert result.current_step is None
        assert result.status == SessionStatus.COMPLETED
        assert [e.step_id for e in result.history] == ["build", "ask"]
        assert result.variables["ask_response"] == "echo: Summarize built"
        assert states.load(state.key).completed

    @pytest.mark.asyncio()
    async def test_state_saved_after_each_step(self, executor, states, runner):
        saved = []
        original = states.save
        states.save = lambda s: (saved.append(s.current_step), original(s))
        workflow = _workflow(
            {"id": "a", "action": "shell", "command": "echo a"},
            {"id": "b", "action": "shell", "command": "echo b"},
        )
        await executor.run(workflow, states.create_initial_state(workflow))
        assert saved == ["b", None]

    @pytest.mark.asyncio()
    async def test_completed_session_is_untouched(self, executor, states, runner):
        workflow = _workflow({"id": "a", "action": "shell", "command": "echo"})
        state = states.create_initial_state(workflow)
        state.completed = True
        state.current_step = None

        assert (await executor.run(workflow, state)).history == []
        assert runner.commands == []

    @pytest.mark.asyncio()
    async def test_variables_interpolated(self, executor, states, runner):
        workflow = _workflow(
            {"id": "c", "action": "commit", "message": "feat: {{feature}} ({{ticket}})"},
            variables={"feature": "default"},
        )
        state = states.create_initial_state(workflow, {"feature": "login"})
        await executor.run(workflow, state)
        assert runner.commands == [["git", "commit", "-m", "feat: login ({{ticket}})"]]


class TestLoopBound:
    """Iteration cap on backward jumps."""

    @pytest.mark.asyncio()
    async def test_unbounded_loop_hits_cap(self, executor, states, agent):
        workflow = _workflow(*SWITCH_LOOP)
        state = states.create_initial_state(workflow, {"x": 1})

        with pytest.raises(LoopBoundError, match="Max iterations exceeded") as exc_info:
            await executor.run(workflow, state)

        assert exc_info.value.limit == 5
        assert state.iteration_count == 5
        assert state.current_step == "s2"
        assert state.failed
        assert state.last_error["type"] == "LoopBoundError"
        switch_outputs = [e.output for e in state.history if e.step_id == "s1"]
        assert len(switch_outputs) == 6
        assert switch_outputs[0]["previousProvider"] == {"name": "ollama", "model": "base-model"}
        assert switch_outputs[0]["newProvider"] == {"name": "ollama", "model": "llama3.2"}
        assert agent.provider.model == "llama3.2"

        persisted = states.load(state.key)
        assert persisted.failed
        assert persisted.iteration_count == 5

    @pytest.mark.asyncio()
    async def test_false_condition_falls_through(self, executor, states):
        workflow = _workflow(*SWITCH_LOOP)
        result = await executor.run(workflow, states.create_initial_state(workflow, {"x": 2}))
        assert result.completed
        assert result.iteration_count == 0

    @pytest.mark.asyncio()
    async def test_loop_max_iterations_lowers_cap(self, states, step_context):
        executor = StepExecutor(states, step_context, max_iterations=100)
        workflow = _workflow(
            {"id": "work", "action": "shell", "command": "echo"},
            {"id": "again", "action": "loop", "to": "work", "condition": "true", "maxIterations": 2},
        )
        state = states.create_initial_state(workflow)
        with pytest.raises(LoopBoundError) as exc_info:
            await executor.run(workflow, state)
        assert exc_info.value.limit == 2
        assert state.iteration_count == 2

    @pytest.mark.asyncio()
    async def test_loop_ends_when_condition_turns_false(self, executor, states, runner):
        runner.on("count", ProcessResult(stdout="3\n"))
        workflow = _workflow(
            {"id": "count", "action": "shell", "command": "count"},
            {"id": "again", "action": "loop", "to": "count", "condition": "iteration < 2"},
        )
        result = await executor.run(workflow, states.create_initial_state(workflow))
        assert result.completed
        assert result.iteration_count == 2
        assert len(runner.commands) == 3

    @pytest.mark.asyncio()
    async def test_forward_jump_does_not_count(self, executor, states):
        workflow = _workflow(
            {"id": "c", "action": "conditional", "check": "true", "onTrue": "end"},
            {"id": "skipped", "action": "shell", "command": "rm -rf build"},
            {"id": "end", "action": "check-file-exists", "file": "x"},
        )
        result = await executor.run(workflow, states.create_initial_state(workflow))
        assert result.completed
        assert result.iteration_count == 0
        assert "skipped" not in [e.step_id for e in result.history]


class TestFailures:
    """Failures persist state and keep the step resumable."""

    @pytest.mark.asyncio()
    async def test_soft_failure_keeps_current_step(self, executor, states, runner):
        runner.on("test", ProcessResult(stderr="2 failed", exit_code=1))
        workflow = _workflow(
            {"id": "test", "action": "shell", "command": "pytest"},
            {"id": "after", "action": "push"},
        )
        state = states.create_initial_state(workflow)

        with pytest.raises(ExecutionError, match="Shell command failed with exit code 1") as exc_info:
            await executor.run(workflow, state)

        error = exc_info.value
        assert error.step_id == "test"
        assert error.hints
        persisted = states.load(state.key)
        assert persisted.current_step == "test"
        assert persisted.status == SessionStatus.FAILED
        assert persisted.history[-1].success is False
        assert persisted.variables["test_exitCode"] == 1
        assert persisted.last_error["message"].startswith("Shell command failed")

    @pytest.mark.asyncio()
    async def test_validation_failure_before_spawn(self, executor, states, runner):
        workflow = _workflow({"id": "c", "action": "commit", "message": "{{msg}}"})
        state = states.create_initial_state(workflow, {"msg": "  "})

        with pytest.raises(ValidationError, match="Git commit message cannot be empty"):
            await executor.run(workflow, state)
        assert runner.commands == []
        assert state.failed

    @pytest.mark.asyncio()
    async def test_unexpected_exception_is_classified(self, executor, states, agent):
        agent.error = RuntimeError("model exploded")
        workflow = _workflow({"id": "a", "action": "ai-prompt", "prompt": "hi"})
        state = states.create_initial_state(workflow)

        with pytest.raises(ExecutionError, match="model exploded") as exc_info:
            await executor.run(workflow, state)
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert state.last_error["step"] == "a"

    @pytest.mark.asyncio()
    async def test_unknown_current_step(self, executor, states):
        workflow = _workflow({"id": "a", "action": "push"})
        state = states.create_initial_state(workflow)
        state.current_step = "renamed"

        with pytest.raises(UnknownStepError, match="Step not found"):
            await executor.run(workflow, state)
        assert states.load(state.key).failed

    @pytest.mark.asyncio()
    async def test_resume_retries_failed_step(self, executor, states, runner):
        runner.on("flaky", ProcessResult(exit_code=1))
        workflow = _workflow({"id": "flaky", "action": "shell", "command": "flaky"})
        state = states.create_initial_state(workflow)
        with pytest.raises(ExecutionError):
            await executor.run(workflow, state)

        runner.clear()
        result = await executor.resume(workflow, states.load(state.key))

        assert result.completed
        assert result.last_error is None
        assert [e.success for e in result.history] == [False, True]


class TestInteractive:
    """Pause for input and resume with an answer."""

    @pytest.fixture()
    def workflow(self):
        return _workflow(
            {"id": "ask", "action": "interactive", "prompt": "Branch for {{feature}}?", "variable": "branch"},
            {"id": "token", "action": "interactive", "prompt": "Token?", "inputType": "password"},
            {"id": "go", "action": "shell", "command": "echo {{branch}}"},
            interactive=True,
            variables={"feature": "login"},
        )

    @pytest.mark.asyncio()
    async def test_pauses_and_resumes(self, executor, states, runner, workflow):
        state = await executor.run(workflow, states.create_initial_state(workflow))
        assert state.paused
        assert state.current_step == "ask"
        assert state.history[-1].output["prompt"] == "Branch for login?"
        assert runner.commands == []

        state = await executor.resume(workflow, states.load(state.key), answer="feature/login")
        assert state.paused
        assert state.current_step == "token"
        assert state.variables["branch"] == "feature/login"

        state = await executor.resume(workflow, states.load(state.key), answer="s3cret")
        assert state.completed
        assert state.variables["token_input"] == "s3cret"
        assert runner.commands == ["echo feature/login"]
        answers = [e.output for e in state.history if e.output and "answer" in e.output]
        assert answers[1]["answer"] == MASKED_ANSWER

    @pytest.mark.asyncio()
    async def test_answer_when_not_waiting(self, executor, states, workflow):
        state = states.create_initial_state(workflow)
        with pytest.raises(StateError, match="not waiting for input"):
            await executor.resume(workflow, state, answer="x")

    @pytest.mark.asyncio()
    async def test_invalid_answer_keeps_session_paused(self, executor, states):
        workflow = _workflow({"id": "ok", "action": "interactive", "prompt": "Ship?", "inputType": "confirm"})
        state = await executor.run(workflow, states.create_initial_state(workflow))

        with pytest.raises(ValidationError):
            await executor.resume(workflow, state, answer="perhaps")
        assert states.load(state.key).paused


class TestCancellation:
    @pytest.mark.asyncio()
    async def test_cancel_between_steps(self, executor, states, runner):
        token = CancellationToken()
        workflow = _workflow(
            {"id": "a", "action": "shell", "command": "echo a"},
            {"id": "b", "action": "shell", "command": "echo b"},
        )
        original = runner.execute

        async def execute_then_cancel(command, cwd=None, timeout=None):
            token.cancel("SIGINT")
            return await original(command, cwd=cwd, timeout=timeout)

        runner.execute = execute_then_cancel
        state = await executor.run(workflow, states.create_initial_state(workflow), token)

        assert state.paused
        assert state.current_step == "b"
        assert runner.commands == ["echo a"]
        assert states.load(state.key).paused

    @pytest.mark.asyncio()
    async def test_cancelled_before_start(self, executor, states, runner):
        token = CancellationToken()
        token.cancel()
        workflow = _workflow({"id": "a", "action": "shell", "command": "echo a"})
        state = await executor.run(workflow, states.create_initial_state(workflow), token)
        assert state.paused
        assert runner.commands == []

    @pytest.mark.asyncio()
    @pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX sleep")
    async def test_interrupted_subprocess_pauses_session(self, states, tmp_path):
        runner = ProcessRunner(cwd=str(tmp_path))
        executor = StepExecutor(states, StepContext(runner=runner, cwd=str(tmp_path)))
        token = CancellationToken()
        workflow = _workflow(
            {"id": "wait", "action": "shell", "command": "exec sleep 10"},
            {"id": "after", "action": "shell", "command": "echo after"},
        )
        state = states.create_initial_state(workflow)

        task = asyncio.create_task(executor.run(workflow, state, token))
        while not runner._running:
            await asyncio.sleep(0.01)
        token.cancel("SIGINT")
        await runner.terminate()
        state = await asyncio.wait_for(task, timeout=5)

        assert state.paused
        assert not state.failed
        assert state.last_error is None
        assert state.current_step == "wait"
        assert [(e.step_id, e.success) for e in state.history] == [("wait", False)]
        persisted = states.load(state.key)
        assert persisted.paused and not persisted.failed
        assert persisted.status == SessionStatus.PAUSED
