"""
Task model.

A task is one unit of work in a swarm: a description for the agent, the ids
of the tasks it depends on, and an optional gating condition. A task runs at
most once; its status only moves forward through TaskStateMachine.
"""

import threading
import uuid
from datetime import datetime
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from agent_swarm.agents.agent import Agent
from agent_swarm.core.exceptions import ExecutionError
from agent_swarm.core.models import TaskOutput
from agent_swarm.core.state_machine import (
    StateTransition,
    TaskState,
    TaskStateMachine,
    utc_now,
)
from agent_swarm.template.resolver import TemplateResolver
from agent_swarm.tools.base import BaseTool

SKIPPED_OUTPUT = "Task skipped due to condition"

# Gating condition: receives the joined prior output text
TaskCondition = Callable[[str], bool]


def context_text(outputs: list[TaskOutput]) -> str:
    """Join the raw outputs of ``outputs`` with single spaces."""
    return " ".join(o.raw_output for o in outputs if o.raw_output).strip()


class Task(BaseModel):
    """A unit of work assigned to an agent."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    description: str = Field(..., min_length=1, description="Instructions for the agent")
    expected_output: Optional[str] = None
    dependencies: list[str] = Field(
        default_factory=list,
        description="IDs of tasks whose outputs this task needs",
    )
    agent: Optional[Agent] = Field(
        default=None,
        description="Assigned agent; hierarchical runs pick one by delegation",
    )
    tools: list[BaseTool] = Field(
        default_factory=list,
        description="Tools the task needs; used to pick a worker",
    )
    async_execution: bool = False
    condition: Optional[TaskCondition] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    # Execution record
    created_at: datetime = Field(default_factory=utc_now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    output: Optional[TaskOutput] = None

    _state: TaskStateMachine = PrivateAttr(default_factory=TaskStateMachine)
    _lock: threading.Lock = PrivateAttr(default_factory=threading.Lock)

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Task id must not be blank")
        return v

    @field_validator("dependencies")
    @classmethod
    def validate_unique_dependencies(cls, v: list[str]) -> list[str]:
        """Ensure a dependency is listed once."""
        if len(v) != len(set(v)):
            raise ValueError("Dependency IDs must be unique")
        return v

    # ==================== State ====================

    @property
    def status(self) -> TaskState:
        return self._state.state

    @property
    def state_history(self) -> list[StateTransition]:
        return self._state.history

    @property
    def is_finished(self) -> bool:
        return self._state.is_terminal

    def is_ready(self, completed_task_ids: set[str]) -> bool:
        """Check whether every dependency has completed."""
        return all(dep in completed_task_ids for dep in self.dependencies)

    def assign_agent(self, agent: Agent) -> None:
        """Assign the agent that will execute this task."""
        if self.status != TaskState.PENDING:
            raise ExecutionError(
                f"Cannot reassign task '{self.id}' in status {self.status.value}",
                task_id=self.id,
            )
        self.agent = agent

    # ==================== Execution ====================

    def relevant_context(self, outputs: list[TaskOutput]) -> list[TaskOutput]:
        """
        Select the prior outputs visible to this task.

        All prior outputs by default; only the dependencies' outputs when
        dependencies are declared.
        """
        if not self.dependencies:
            return list(outputs)
        wanted = set(self.dependencies)
        return [o for o in outputs if o.task_id in wanted]

    def execute(self, context: Optional[list[TaskOutput]] = None) -> TaskOutput:
        """
        Execute the task once.

        Args:
            context: Outputs of the tasks executed before this one

        Returns:
            The agent's output, or the skip output when the gating
            condition is false

        Raises:
            ExecutionError: If the task already ran, has no agent, or the
                agent fails
        """
        with self._lock:
            if self.status != TaskState.PENDING:
                raise ExecutionError(
                    f"Task '{self.id}' has already been executed (status: {self.status.value})",
                    task_id=self.id,
                )
            self._state.transition(TaskState.RUNNING, reason="Execution started")
            self.started_at = utc_now()

        relevant = self.relevant_context(context or [])
        try:
            if self.condition is not None and not self.condition(context_text(relevant)):
                output = TaskOutput(
                    task_id=self.id,
                    agent_id=self.agent.id if self.agent else None,
                    description=self.description,
                    expected_output=self.expected_output,
                    raw_output=SKIPPED_OUTPUT,
                    skipped=True,
                )
                self._finish(TaskState.SKIPPED, output, "Condition evaluated to false")
                return output

            if self.agent is None:
                raise ExecutionError(
                    f"Task '{self.id}': agent is required for task execution",
                    task_id=self.id,
                )

            output = self.agent.execute_task(self, relevant)
        except Exception as e:
            self.failure_reason = str(e)
            self.completed_at = utc_now()
            self._state.transition(TaskState.FAILED, reason=str(e))
            if isinstance(e, ExecutionError):
                raise
            raise ExecutionError(
                f"Task '{self.id}' failed: {e}",
                task_id=self.id,
            ) from e

        self._finish(TaskState.COMPLETED, output, "Agent produced output")
        return output

    def _finish(self, state: TaskState, output: TaskOutput, reason: str) -> None:
        self.output = output
        self.completed_at = utc_now()
        self._state.transition(state, reason=reason)

    # ==================== Copies ====================

    def fresh_copy(self, **update: Any) -> "Task":
        """Return a PENDING copy of this task with its own state machine."""
        values = {
            "dependencies": list(self.dependencies),
            "tools": list(self.tools),
            "metadata": dict(self.metadata),
            "created_at": utc_now(),
            "started_at": None,
            "completed_at": None,
            "failure_reason": None,
            "output": None,
        }
        values.update(update)
        copy = self.model_copy(update=values)
        copy._state = TaskStateMachine()
        copy._lock = threading.Lock()
        return copy

    def interpolate_inputs(self, inputs: Optional[dict[str, Any]]) -> "Task":
        """Return a fresh copy with ``{{ input.x }}`` references resolved."""
        resolver = TemplateResolver(inputs)
        return self.fresh_copy(
            description=resolver.resolve_text(self.description),
            expected_output=resolver.resolve_text(self.expected_output),
        )

    def __repr__(self) -> str:
        return f"Task(id={self.id!r}, status={self.status.value})"
