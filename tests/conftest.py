"""Pytest configuration and shared fixtures.

Collaborators are replaced by in-memory fakes so step handlers and the executor
run deterministically; state goes to a real StateManager under tmp_path.
"""

import subprocess
from collections.abc import Sequence

import pytest

from src.application.workflow.executor import StepExecutor
from src.application.workflow.manager import WorkflowManager
from src.application.workflow.steps import StepContext
from src.domain.entities.workflow_state import WorkflowState
from src.domain.ports.agent import ProviderConfig
from src.domain.ports.process import ProcessResult
from src.domain.ports.source_hosting import PullRequest, PullRequestParams
from src.infrastructure.persistence.workflow_state_manager import StateManager


class FakeAgent:
    """AgentPort that answers from a script and remembers what it was asked."""

    def __init__(self, responses: list[str] | None = None) -> None:
        self._provider = ProviderConfig(name="ollama", model="base-model")
        self.responses = list(responses or [])
        self.prompts: list[tuple[str, ProviderConfig]] = []
        self.switches: list[ProviderConfig] = []
        self.error: Exception | None = None

    @property
    def provider(self) -> ProviderConfig:
        return self._provider

    def set_provider(self, config: ProviderConfig) -> None:
        self.switches.append(config)
        self._provider = config

    async def chat(self, prompt: str) -> str:
        self.prompts.append((prompt, self._provider))
        if self.error is not None:
            raise self.error
        if self.responses:
            return self.responses.pop(0)
        return f"echo: {prompt}"


class FakeRunner:
    """ProcessRunnerPort returning scripted results keyed by command fragment."""

    def __init__(self) -> None:
        self.commands: list[str | Sequence[str]] = []
        self.calls: list[dict] = []
        self._scripted: list[tuple[str, ProcessResult | Exception]] = []
        self.default = ProcessResult(stdout="ok\n")
        self.terminated = 0

    def on(self, fragment: str, result: ProcessResult | Exception) -> None:
        self._scripted.append((fragment, result))

    def clear(self) -> None:
        self._scripted.clear()

    async def execute(self, command, cwd=None, timeout=None) -> ProcessResult:
        self.commands.append(command)
        self.calls.append({"command": command, "cwd": cwd, "timeout": timeout})
        text = command if isinstance(command, str) else " ".join(command)
        for fragment, result in self._scripted:
            if fragment in text:
                if isinstance(result, Exception):
                    raise result
                return result
        return self.default

    async def terminate(self) -> None:
        self.terminated += 1


class FakeHosting:
    """SourceHostingPort keeping pull requests in memory."""

    def __init__(self) -> None:
        self.created: list[PullRequestParams] = []
        self.open: list[PullRequest] = []
        self.merged: list[tuple[str, int]] = []
        self.error: Exception | None = None

    async def create_pull_request(self, params: PullRequestParams) -> PullRequest:
        if self.error is not None:
            raise self.error
        self.created.append(params)
        number = len(self.created) + 41
        pr = PullRequest(number=number, url=f"https://github.com/{params.repo}/pull/{number}", title=params.title)
        self.open.append(pr)
        return pr

    async def latest_open_pull_request(self, repo: str) -> PullRequest | None:
        if self.error is not None:
            raise self.error
        return self.open[-1] if self.open else None

    async def merge_pull_request(self, repo: str, number: int) -> dict:
        if self.error is not None:
            raise self.error
        self.merged.append((repo, number))
        self.open = [pr for pr in self.open if pr.number != number]
        return {"merged": True, "sha": "abc123", "message": "Pull Request successfully merged"}


@pytest.fixture()
def agent():
    return FakeAgent()


@pytest.fixture()
def runner():
    return FakeRunner()


@pytest.fixture()
def hosting():
    return FakeHosting()


@pytest.fixture()
def step_context(agent, runner, hosting, tmp_path):
    return StepContext(
        agent=agent,
        runner=runner,
        hosting=hosting,
        available_models={"ollama:base-model"},
        cwd=str(tmp_path),
        shell_timeout=30.0,
        default_repo="octo/demo",
    )


@pytest.fixture()
def state():
    """Blank session state for handler tests."""
    return WorkflowState(name="demo", session_id="test1", current_step=None)


@pytest.fixture()
def states(tmp_path):
    return StateManager(tmp_path / "state")


@pytest.fixture()
def executor(states, step_context):
    return StepExecutor(states, step_context, max_iterations=5)


@pytest.fixture()
def workflows_dir(tmp_path):
    path = tmp_path / "workflows"
    path.mkdir()
    return path


@pytest.fixture()
def write_workflow(workflows_dir):
    """Write a workflow file into workflows_dir; returns its path."""

    def _write(filename: str, text: str):
        path = workflows_dir / filename
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def manager(states, executor, workflows_dir):
    return WorkflowManager(states, executor, directories=[str(workflows_dir)])


@pytest.fixture()
def git_repo(tmp_path):
    """Create a real git repo with a commit."""
    repo = tmp_path / "repo"
    repo.mkdir()
    subprocess.run(["git", "init"], cwd=repo, capture_output=True, check=True)
    subprocess.run(
        ["git", "config", "user.email", "test@test.com"],
        cwd=repo, capture_output=True, check=True,
    )
    subprocess.run(
        ["git", "config", "user.name", "Test"],
        cwd=repo, capture_output=True, check=True,
    )
    (repo / "file.py").write_text("print('hello')\n")
    subprocess.run(["git", "add", "."], cwd=repo, capture_output=True, check=True)
    subprocess.run(
        ["git", "commit", "-m", "Initial commit"],
        cwd=repo, capture_output=True, check=True,
    )
    return repo
