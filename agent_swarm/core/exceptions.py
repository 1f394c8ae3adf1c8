"""
Error taxonomy for swarm runs.

Configuration errors are raised before any task executes; execution errors
abort a run that is already in progress.
"""

from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from agent_swarm.core.models import SwarmOutput


class SwarmError(Exception):
    """Base class for all swarm errors."""

    def __init__(
        self,
        message: str,
        task_id: Optional[str] = None,
        **details: Any,
    ):
        self.message = message
        self.task_id = task_id
        self.details = details
        super().__init__(message)


class ConfigurationError(SwarmError):
    """Raised when a swarm, process or task set is misconfigured."""


class TaskGraphError(ConfigurationError):
    """Raised when the task dependency graph cannot be ordered."""

    def __init__(
        self,
        code: str,
        message: str,
        task_id: Optional[str] = None,
        **details: Any,
    ):
        self.code = code
        super().__init__(message, task_id=task_id, **details)


class ExecutionError(SwarmError):
    """Raised when an agent, tool or task fails while running."""


class ProcessExecutionError(ExecutionError):
    """
    Raised when a process run aborts.

    ``stage`` names the failing step (a task id, or a manager pass such as
    "coordination"), and ``partial_output`` holds whatever was produced
    before the failure.
    """

    def __init__(
        self,
        message: str,
        stage: str,
        partial_output: Optional["SwarmOutput"] = None,
        task_id: Optional[str] = None,
        **details: Any,
    ):
        self.stage = stage
        self.partial_output = partial_output
        super().__init__(message, task_id=task_id, **details)
