"""
Unit tests for state machine transitions.
"""

import threading

import pytest

from agent_swarm.core.exceptions import SwarmError
from agent_swarm.core.state_machine import (
    InvalidStateTransitionError,
    SwarmState,
    SwarmStateMachine,
    TaskState,
    TaskStateMachine,
)


class TestTaskStateMachine:
    """Tests for task state machine."""

    def test_initial_state(self):
        """Test default initial state is PENDING."""
        sm = TaskStateMachine()

        assert sm.state == TaskState.PENDING
        assert not sm.is_terminal

    def test_valid_transition_pending_to_running(self):
        """Test valid transition from PENDING to RUNNING."""
        sm = TaskStateMachine()

        transition = sm.transition(TaskState.RUNNING, reason="Execution started")

        assert sm.state == TaskState.RUNNING
        assert transition.from_state == "PENDING"
        assert transition.to_state == "RUNNING"
        assert transition.reason == "Execution started"

    @pytest.mark.parametrize("final", [TaskState.COMPLETED, TaskState.SKIPPED, TaskState.FAILED])
    def test_running_to_terminal(self, final):
        """Test each outcome is reachable from RUNNING and is terminal."""
        sm = TaskStateMachine(TaskState.RUNNING)

        sm.transition(final)

        assert sm.state == final
        assert sm.is_terminal
        assert sm.get_valid_transitions() == set()

    def test_skipped_counts_as_success(self):
        """Test a skip is a successful outcome."""
        sm = TaskStateMachine(TaskState.SKIPPED)

        assert sm.is_success
        assert not sm.is_failure

    def test_failed_is_failure(self):
        """Test FAILED is a failure outcome."""
        sm = TaskStateMachine(TaskState.FAILED)

        assert sm.is_failure
        assert not sm.is_success

    def test_pending_cannot_complete_directly(self):
        """Test a task must run before it completes."""
        sm = TaskStateMachine()

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            sm.transition(TaskState.COMPLETED)

        assert exc_info.value.from_state == "PENDING"
        assert exc_info.value.to_state == "COMPLETED"
        assert "RUNNING" in str(exc_info.value)

    def test_completed_cannot_run_again(self):
        """Test terminal states are final."""
        sm = TaskStateMachine(TaskState.COMPLETED)

        assert not sm.can_transition_to(TaskState.RUNNING)
        with pytest.raises(InvalidStateTransitionError):
            sm.transition(TaskState.RUNNING)

    def test_guard_blocks_transition(self):
        """Test a failing guard prevents the transition."""
        sm = TaskStateMachine()

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            sm.transition(TaskState.RUNNING, guard=lambda: False)

        assert "Guard condition failed" in str(exc_info.value)
        assert sm.state == TaskState.PENDING

    def test_history_tracking(self):
        """Test transitions are recorded in order."""
        sm = TaskStateMachine()

        sm.transition(TaskState.RUNNING, triggered_by="process")
        sm.transition(TaskState.COMPLETED, metadata={"tokens": 15})

        history = sm.history
        assert [h.to_state for h in history] == ["RUNNING", "COMPLETED"]
        assert history[0].triggered_by == "process"
        assert history[1].metadata == {"tokens": 15}

    def test_history_is_a_copy(self):
        """Test callers cannot mutate the history."""
        sm = TaskStateMachine()
        sm.transition(TaskState.RUNNING)

        sm.history.clear()

        assert len(sm.history) == 1


class TestSwarmStateMachine:
    """Tests for swarm state machine."""

    def test_initial_state(self):
        """Test default initial state is READY."""
        sm = SwarmStateMachine()

        assert sm.state == SwarmState.READY
        assert not sm.is_active

    def test_kickoff_lifecycle(self):
        """Test READY -> RUNNING -> COMPLETED."""
        sm = SwarmStateMachine()

        sm.transition(SwarmState.RUNNING)
        assert sm.is_active

        sm.transition(SwarmState.COMPLETED)
        assert sm.is_terminal
        assert sm.is_success

    def test_rekickoff_after_failure(self):
        """Test a failed swarm can be kicked off again."""
        sm = SwarmStateMachine(SwarmState.FAILED)

        sm.transition(SwarmState.RUNNING)

        assert sm.state == SwarmState.RUNNING

    def test_running_to_running_rejected(self):
        """Test the state machine itself rejects RUNNING to RUNNING."""
        sm = SwarmStateMachine(SwarmState.RUNNING)

        with pytest.raises(SwarmError) as exc_info:
            sm.transition(SwarmState.RUNNING)

        assert isinstance(exc_info.value, InvalidStateTransitionError)
        assert exc_info.value.details == {"from_state": "RUNNING", "to_state": "RUNNING"}

    def test_racing_transitions(self):
        """Test only one of many racing READY to RUNNING transitions wins."""
        sm = SwarmStateMachine()
        barrier = threading.Barrier(8)
        errors: list[Exception] = []

        def start():
            barrier.wait()
            try:
                sm.transition(SwarmState.RUNNING)
            except InvalidStateTransitionError as e:
                errors.append(e)

        threads = [threading.Thread(target=start) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(errors) == 7
        assert len(sm.history) == 1
