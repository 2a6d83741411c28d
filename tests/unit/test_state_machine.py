"""
Unit tests for JobStateMachine.

Tests the export job lifecycle:
- Valid transitions from pending and processing
- Terminal states rejecting every trigger
- History tracking and transition callbacks
"""

from __future__ import annotations

import pytest

from wasilah.core.exceptions import StateTransitionError
from wasilah.core.state import TRANSITIONS, JobStateMachine
from wasilah.data.models import JobStatus

pytestmark = pytest.mark.unit


class TestTransitions:
    def test_initial_state(self):
        machine = JobStateMachine("EXP-1")
        assert machine.status == JobStatus.PENDING
        assert machine.history == ["pending"]
        assert not machine.is_terminal

    def test_happy_path(self):
        machine = JobStateMachine("EXP-1")
        assert machine.fire("start") == JobStatus.PROCESSING
        assert machine.fire("complete") == JobStatus.COMPLETED
        assert machine.history == ["pending", "processing", "completed"]
        assert machine.is_terminal

    @pytest.mark.parametrize("trigger, dest", [("fail", "failed"), ("cancel", "cancelled")])
    def test_fail_and_cancel_from_pending(self, trigger, dest):
        machine = JobStateMachine("EXP-1")
        assert machine.fire(trigger).value == dest

    @pytest.mark.parametrize("trigger, dest", [("fail", "failed"), ("cancel", "cancelled")])
    def test_fail_and_cancel_from_processing(self, trigger, dest):
        machine = JobStateMachine("EXP-1")
        machine.fire("start")
        assert machine.fire(trigger).value == dest

    def test_complete_requires_processing(self):
        machine = JobStateMachine("EXP-1")
        with pytest.raises(StateTransitionError) as exc_info:
            machine.fire("complete")
        assert exc_info.value.from_state == "pending"
        assert exc_info.value.trigger == "complete"
        assert machine.status == JobStatus.PENDING


class TestTerminalStates:
    @pytest.mark.parametrize(
        "status", [JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED]
    )
    @pytest.mark.parametrize("trigger", ["start", "complete", "fail", "cancel"])
    def test_terminal_states_accept_nothing(self, status, trigger):
        machine = JobStateMachine("EXP-1", initial=status)
        assert machine.available_triggers() == []
        with pytest.raises(StateTransitionError):
            machine.fire(trigger)
        assert machine.status == status

    def test_unknown_trigger(self):
        with pytest.raises(StateTransitionError):
            JobStateMachine("EXP-1").fire("pause")


class TestCallbacks:
    def test_on_transition_receives_new_status(self):
        seen = []
        machine = JobStateMachine("EXP-1", on_transition=seen.append)
        machine.fire("start")
        machine.fire("fail")
        assert seen == [JobStatus.PROCESSING, JobStatus.FAILED]

    def test_can(self):
        machine = JobStateMachine("EXP-1")
        assert machine.can("start")
        assert machine.can("cancel")
        assert not machine.can("complete")

    def test_transition_table_targets_known_states(self):
        states = {status.value for status in JobStatus}
        for transition in TRANSITIONS:
            sources = transition["source"]
            sources = sources if isinstance(sources, list) else [sources]
            assert set(sources) <= states
            assert transition["dest"] in states
