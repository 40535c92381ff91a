"""Tests for StateManager - JSON session persistence."""

import json

import pytest

from src.application.workflow.parser import load_workflow
from src.domain.entities.workflow_state import SessionKey, StepExecution
from src.domain.errors import SessionNotFoundError, StateError
from src.infrastructure.persistence.workflow_state_manager import StateManager, new_session_id


@pytest.fixture()
def workflow():
    return load_workflow(
        {
            "name": "my flow",
            "variables": {"env": "dev", "region": "eu"},
            "steps": [{"id": "a", "action": "push"}, {"id": "b", "action": "pull"}],
        }
    )


@pytest.fixture()
def manager(tmp_path):
    return StateManager(tmp_path)


class TestStateManager:
    """Tests for save / load / list / delete."""

    def test_initial_state(self, manager, workflow):
        state = manager.create_initial_state(workflow, {"env": "prod"}, session_id="s1")
        assert state.current_step == "a"
        assert state.variables == {"env": "prod", "region": "eu"}
        assert state.key == SessionKey("my flow", "s1")

    def test_generated_session_id(self, manager, workflow):
        state = manager.create_initial_state(workflow)
        assert len(state.session_id) == 12
        assert new_session_id() != new_session_id()

    def test_save_and_load(self, manager, workflow, tmp_path):
        state = manager.create_initial_state(workflow, session_id="s1")
        state.record(StepExecution(step_id="a", action="push", success=True, output={"exitCode": 0}))
        state.current_step = "b"
        manager.save(state)

        path = tmp_path / "my_flow" / "s1.json"
        data = json.loads(path.read_text())
        assert data["currentStep"] == "b"
        assert data["history"][0]["stepId"] == "a"

        loaded = manager.load(state.key)
        assert loaded == state

    def test_missing_state(self, manager):
        with pytest.raises(SessionNotFoundError, match="State file not found"):
            manager.load(SessionKey("my flow", "nope"))

    def test_corrupt_json(self, manager, tmp_path):
        (tmp_path / "my_flow").mkdir()
        (tmp_path / "my_flow" / "bad.json").write_text("{not json")
        with pytest.raises(StateError, match="Corrupt state file"):
            manager.load(SessionKey("my flow", "bad"))

    def test_schema_mismatch(self, manager, tmp_path):
        (tmp_path / "my_flow").mkdir()
        (tmp_path / "my_flow" / "odd.json").write_text(json.dumps({"name": "my flow", "history": "nope"}))
        with pytest.raises(StateError, match="does not match the state schema"):
            manager.load(SessionKey("my flow", "odd"))

    def test_session_mismatch(self, manager, workflow, tmp_path):
        state = manager.create_initial_state(workflow, session_id="s1")
        manager.save(state)
        (tmp_path / "my_flow" / "s1.json").rename(tmp_path / "my_flow" / "s2.json")
        with pytest.raises(StateError, match="file holds session"):
            manager.load(SessionKey("my flow", "s2"))

    def test_invalid_session_id(self, manager):
        with pytest.raises(StateError, match="Invalid session id"):
            manager.load(SessionKey("my flow", "../../etc/passwd"))

    def test_list_sessions_skips_corrupt(self, manager, workflow, tmp_path):
        first = manager.create_initial_state(workflow, session_id="first")
        manager.save(first)
        second = manager.create_initial_state(workflow, session_id="second")
        second.touch()
        manager.save(second)
        (tmp_path / "my_flow" / "broken.json").write_text("{")

        sessions = manager.list_sessions("my flow")
        assert [s.session_id for s in sessions] == ["second", "first"]
        assert manager.list_sessions("other") == []

    def test_delete(self, manager, workflow):
        state = manager.create_initial_state(workflow, session_id="s1")
        manager.save(state)
        assert manager.delete(state.key) is True
        assert manager.delete(state.key) is False
