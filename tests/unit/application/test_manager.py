"""Tests for WorkflowManager - discovery, validation and session lifecycle."""

import pytest

from src.application.workflow.cancellation import CancellationToken
from src.domain.entities.workflow_state import SessionKey, SessionStatus
from src.domain.errors import (
    LoopBoundError,
    SessionNotFoundError,
    StateError,
    WorkflowNotFoundError,
)

RELEASE = """
name: release
description: Tag and push
steps:
  - id: confirm
    action: interactive
    prompt: Release {{version}}?
    inputType: confirm
  - id: check
    action: conditional
    check: confirm_input
    onTrue: push
    onFalse: stop
  - id: push
    action: push
  - id: stop
    action: check-file-exists
    file: CHANGELOG.md
interactive: true
variables:
  version: "1.0"
"""

LOOPING = """
name: demo
steps:
  - id: s1
    action: switch-model
    model: llama3.2
  - id: s2
    action: conditional
    check: x==1
    onTrue: s1
"""


@pytest.fixture()
def installed(write_workflow):
    write_workflow("release.yaml", RELEASE)
    write_workflow("demo.yaml", LOOPING)
    write_workflow("broken.yaml", "name: broken\nsteps:\n  - id: c\n    action: commit\n")


class TestDiscovery:
    def test_lists_workflows(self, manager, installed):
        listings = {w.name: w for w in manager.list_available_workflows()}
        assert set(listings) == {"release", "demo", "broken"}
        assert listings["broken"].valid is False

    def test_load_missing(self, manager, installed):
        with pytest.raises(WorkflowNotFoundError, match="Workflow not found: nope"):
            manager.load("nope")

    def test_validate_by_name(self, manager, installed):
        report = manager.validate("broken")
        assert report.errors == ["Git commit action must have a message"]

    def test_validate_by_path(self, manager, installed, workflows_dir):
        assert manager.validate(str(workflows_dir / "release.yaml")).valid

    def test_validate_bad_yaml(self, manager, write_workflow):
        write_workflow("bad.yaml", "name: [oops\n")
        report = manager.validate("bad")
        assert not report.valid
        assert report.errors[0].startswith("Invalid YAML")


class TestSessions:
    """run / resume / status / abandon."""

    @pytest.mark.asyncio()
    async def test_interactive_session(self, manager, installed, runner):
        session = await manager.run("release", session_id="r1")

        assert session.status == SessionStatus.PAUSED
        assert session.key == SessionKey("release", "r1")
        request = session.input_request
        assert request.prompt == "Release 1.0?"
        assert request.input_type == "confirm"
        assert session.to_dict()["inputRequest"]["stepId"] == "confirm"

        session = await manager.resume("release/r1", answer="yes")
        assert session.status == SessionStatus.COMPLETED
        assert session.input_request is None
        assert runner.commands == [["git", "push"]]

    @pytest.mark.asyncio()
    async def test_declined_branch(self, manager, installed, runner):
        await manager.run("release", session_id="r2")
        session = await manager.resume(SessionKey("release", "r2"), answer="no")
        assert session.status == SessionStatus.COMPLETED
        assert runner.commands == []
        assert session.state.variables["confirm_input"] is False

    @pytest.mark.asyncio()
    async def test_duplicate_session_id(self, manager, installed):
        await manager.run("release", session_id="dup")
        with pytest.raises(StateError, match="already exists"):
            await manager.run("release", session_id="dup")

    @pytest.mark.asyncio()
    async def test_failed_session_is_persisted(self, manager, installed):
        with pytest.raises(LoopBoundError):
            await manager.run("demo", initial_variables={"x": 1}, session_id="loop")

        state = manager.status("demo/loop")
        assert state.status == SessionStatus.FAILED
        summary = manager.summary("demo/loop")
        assert summary.status == "failed"
        assert summary.failed_step == "s2"
        assert summary.error.startswith("Max iterations exceeded")

    @pytest.mark.asyncio()
    async def test_cancelled_run(self, manager, installed):
        token = CancellationToken()
        token.cancel()
        session = await manager.run("demo", initial_variables={"x": 2}, token=token)
        assert session.status == SessionStatus.PAUSED

    @pytest.mark.asyncio()
    async def test_handle_signals(self, manager, installed):
        session = await manager.run("demo", initial_variables={"x": 2}, handle_signals=True)
        assert session.status == SessionStatus.COMPLETED

    @pytest.mark.asyncio()
    async def test_list_and_abandon(self, manager, installed):
        await manager.run("release", session_id="a")
        await manager.run("demo", initial_variables={"x": 2}, session_id="b")

        assert {str(s.key) for s in manager.list_sessions()} == {"release/a", "demo/b"}
        assert [str(s.key) for s in manager.list_sessions("demo")] == ["demo/b"]

        assert manager.abandon("demo/b") is True
        with pytest.raises(SessionNotFoundError):
            manager.abandon("demo/b")
        with pytest.raises(SessionNotFoundError, match="State file not found"):
            manager.status("demo/b")

    def test_bad_session_key(self, manager):
        with pytest.raises(StateError, match="Invalid session key"):
            manager.status("no-slash")
