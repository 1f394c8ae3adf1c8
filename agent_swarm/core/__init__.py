"""Core domain models and business logic."""

from agent_swarm.core.exceptions import (
    ConfigurationError,
    ExecutionError,
    ProcessExecutionError,
    SwarmError,
    TaskGraphError,
)
from agent_swarm.core.graph import TaskGraph, ValidationResult, order_tasks
from agent_swarm.core.models import ProcessType, SwarmOutput, TaskOutput
from agent_swarm.core.state_machine import (
    InvalidStateTransitionError,
    SwarmState,
    SwarmStateMachine,
    TaskState,
    TaskStateMachine,
)

__all__ = [
    "ConfigurationError",
    "ExecutionError",
    "ProcessExecutionError",
    "SwarmError",
    "TaskGraphError",
    "TaskGraph",
    "ValidationResult",
    "order_tasks",
    "ProcessType",
    "SwarmOutput",
    "TaskOutput",
    "InvalidStateTransitionError",
    "SwarmState",
    "SwarmStateMachine",
    "TaskState",
    "TaskStateMachine",
]
