"""
State machine definitions for task and swarm states.

Implements explicit state transitions with guards and validation.
"""

import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, Field

from agent_swarm.core.exceptions import SwarmError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TaskState(str, Enum):
    """
    Possible states for a task.

    State transitions:
    - PENDING -> RUNNING -> COMPLETED
    - PENDING -> RUNNING -> SKIPPED (gating condition was false)
    - PENDING -> RUNNING -> FAILED
    """

    PENDING = "PENDING"      # Waiting to be scheduled
    RUNNING = "RUNNING"      # Being executed by an agent
    COMPLETED = "COMPLETED"  # Agent produced an output
    SKIPPED = "SKIPPED"      # Gating condition evaluated to false
    FAILED = "FAILED"        # Agent or condition raised


class SwarmState(str, Enum):
    """
    Possible states for a swarm.

    State transitions:
    - READY -> RUNNING -> COMPLETED
    - READY -> RUNNING -> FAILED
    - COMPLETED/FAILED -> RUNNING (kicked off again)
    """

    READY = "READY"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class StateTransition(BaseModel):
    """Represents a state transition event."""

    from_state: str
    to_state: str
    timestamp: datetime = Field(default_factory=utc_now)
    reason: Optional[str] = None
    triggered_by: Optional[str] = None
    metadata: dict = Field(default_factory=dict)


class InvalidStateTransitionError(SwarmError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_state: str, to_state: str, message: str = ""):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid state transition from {from_state} to {to_state}"
            + (f": {message}" if message else ""),
            from_state=from_state,
            to_state=to_state,
        )


# Type alias for transition guards
TransitionGuard = Callable[[], bool]


class _StateMachine:
    """Shared transition bookkeeping for the concrete state machines."""

    VALID_TRANSITIONS: dict = {}
    TERMINAL_STATES: set = set()
    SUCCESS_STATES: set = set()
    FAILURE_STATES: set = set()

    def __init__(self, initial_state):
        self._state = initial_state
        self._history: list[StateTransition] = []
        self._lock = threading.Lock()

    @property
    def state(self):
        """Get current state."""
        return self._state

    @property
    def history(self) -> list[StateTransition]:
        """Get state transition history."""
        return self._history.copy()

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal."""
        return self._state in self.TERMINAL_STATES

    @property
    def is_success(self) -> bool:
        return self._state in self.SUCCESS_STATES

    @property
    def is_failure(self) -> bool:
        return self._state in self.FAILURE_STATES

    def can_transition_to(self, to_state) -> bool:
        """Check if transition to given state is valid."""
        return to_state in self.VALID_TRANSITIONS.get(self._state, set())

    def get_valid_transitions(self) -> set:
        """Get all valid transitions from current state."""
        return self.VALID_TRANSITIONS.get(self._state, set()).copy()

    def transition(
        self,
        to_state,
        reason: Optional[str] = None,
        triggered_by: Optional[str] = None,
        guard: Optional[TransitionGuard] = None,
        metadata: Optional[dict] = None,
    ) -> StateTransition:
        """
        Transition to a new state.

        Args:
            to_state: Target state
            reason: Reason for transition
            triggered_by: Who/what triggered the transition
            guard: Optional guard function that must return True
            metadata: Additional metadata for the transition

        Returns:
            StateTransition record

        Raises:
            InvalidStateTransitionError: If transition is not valid
        """
        # Check-then-set is atomic
        with self._lock:
            if not self.can_transition_to(to_state):
                valid = sorted(s.value for s in self.get_valid_transitions())
                raise InvalidStateTransitionError(
                    self._state.value,
                    to_state.value,
                    f"Valid transitions: {valid}",
                )

            if guard is not None and not guard():
                raise InvalidStateTransitionError(
                    self._state.value,
                    to_state.value,
                    "Guard condition failed",
                )

            transition = StateTransition(
                from_state=self._state.value,
                to_state=to_state.value,
                reason=reason,
                triggered_by=triggered_by,
                metadata=metadata or {},
            )

            self._history.append(transition)
            self._state = to_state

        return transition


class TaskStateMachine(_StateMachine):
    """
    State machine for task execution states.

    Every terminal state is final, so a task can run at most once.
    """

    VALID_TRANSITIONS: dict[TaskState, set[TaskState]] = {
        TaskState.PENDING: {TaskState.RUNNING},
        TaskState.RUNNING: {
            TaskState.COMPLETED,
            TaskState.SKIPPED,
            TaskState.FAILED,
        },
        TaskState.COMPLETED: set(),  # Terminal state
        TaskState.SKIPPED: set(),    # Terminal state
        TaskState.FAILED: set(),     # Terminal state
    }

    TERMINAL_STATES: set[TaskState] = {
        TaskState.COMPLETED,
        TaskState.SKIPPED,
        TaskState.FAILED,
    }

    # A skip is a normal outcome, not an error
    SUCCESS_STATES: set[TaskState] = {TaskState.COMPLETED, TaskState.SKIPPED}

    FAILURE_STATES: set[TaskState] = {TaskState.FAILED}

    def __init__(self, initial_state: TaskState = TaskState.PENDING):
        super().__init__(initial_state)


class SwarmStateMachine(_StateMachine):
    """State machine for swarm kickoffs."""

    VALID_TRANSITIONS: dict[SwarmState, set[SwarmState]] = {
        SwarmState.READY: {SwarmState.RUNNING},
        SwarmState.RUNNING: {SwarmState.COMPLETED, SwarmState.FAILED},
        SwarmState.COMPLETED: {SwarmState.RUNNING},
        SwarmState.FAILED: {SwarmState.RUNNING},
    }

    TERMINAL_STATES: set[SwarmState] = {SwarmState.COMPLETED, SwarmState.FAILED}

    SUCCESS_STATES: set[SwarmState] = {SwarmState.COMPLETED}

    FAILURE_STATES: set[SwarmState] = {SwarmState.FAILED}

    def __init__(self, initial_state: SwarmState = SwarmState.READY):
        super().__init__(initial_state)

    @property
    def is_active(self) -> bool:
        """Check if the swarm is running."""
        return self._state == SwarmState.RUNNING
