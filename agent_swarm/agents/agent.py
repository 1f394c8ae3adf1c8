"""
Agent model.

An agent is a persona (role, goal, backstory) plus an executor that does the
actual work and the tools it may call.
"""

import logging
import threading
import time
import uuid
from typing import Optional, TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from agent_swarm.agents.executors import AgentExecutor
from agent_swarm.core.exceptions import ExecutionError
from agent_swarm.core.models import TaskOutput
from agent_swarm.knowledge.base import Knowledge
from agent_swarm.memory.base import Memory
from agent_swarm.tools.base import BaseTool

if TYPE_CHECKING:
    from agent_swarm.core.task import Task

logger = logging.getLogger(__name__)


class Agent(BaseModel):
    """An autonomous worker that executes tasks."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: str = Field(..., description="Short job title, used for delegation matching")
    goal: str = Field(..., description="What the agent is trying to achieve")
    backstory: str = Field(..., description="Persona background for the prompt")
    executor: AgentExecutor
    tools: list[BaseTool] = Field(default_factory=list)
    memory: Optional[Memory] = Field(
        default=None,
        description="Private memory; falls back to the swarm memory when unset",
    )
    knowledge: Optional[Knowledge] = Field(
        default=None,
        description="Consulted with the task description when building prompts",
    )
    allow_delegation: bool = Field(
        default=False,
        description="Required for a manager agent in a hierarchical swarm",
    )
    verbose: bool = False
    max_execution_time: Optional[int] = Field(
        default=None,
        gt=0,
        description="Soft limit in milliseconds; overruns are logged, not cancelled",
    )
    execution_count: int = 0

    _lock: threading.Lock = PrivateAttr(default_factory=threading.Lock)

    @field_validator("role", "goal", "backstory")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject empty or whitespace-only persona fields."""
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

    @field_validator("tools")
    @classmethod
    def validate_unique_tools(cls, v: list[BaseTool]) -> list[BaseTool]:
        """Ensure tool names are unique."""
        names = [tool.name for tool in v]
        if len(names) != len(set(names)):
            raise ValueError("Tool names must be unique")
        return v

    @property
    def tool_names(self) -> list[str]:
        return [tool.name for tool in self.tools]

    def has_tool(self, name: str) -> bool:
        return name.lower() in {n.lower() for n in self.tool_names}

    def execute_task(self, task: "Task", context: list[TaskOutput]) -> TaskOutput:
        """
        Run a task through this agent's executor.

        Args:
            task: Task to execute
            context: Outputs of prior tasks visible to this task

        Returns:
            TaskOutput attributed to this agent and task

        Raises:
            ExecutionError: If the executor fails
        """
        with self._lock:
            self.execution_count += 1

        if self.verbose:
            logger.info(f"Agent {self.role} executing task {task.id}")

        started = time.perf_counter()
        try:
            result = self.executor.execute(self, task, context)
        except ExecutionError:
            raise
        except Exception as e:
            raise ExecutionError(
                f"Failed to execute task: {task.id}: {e}",
                task_id=task.id,
                agent_id=self.id,
            ) from e
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        if self.max_execution_time is not None and elapsed_ms > self.max_execution_time:
            logger.warning(
                f"Agent {self.role} exceeded max_execution_time on task {task.id}: "
                f"{elapsed_ms}ms > {self.max_execution_time}ms"
            )

        if isinstance(result, str):
            return TaskOutput(
                task_id=task.id,
                agent_id=self.id,
                description=task.description,
                expected_output=task.expected_output,
                raw_output=result,
                execution_time_ms=elapsed_ms,
            )

        if not isinstance(result, TaskOutput):
            raise ExecutionError(
                f"Failed to execute task: {task.id}: executor returned "
                f"{type(result).__name__}, expected TaskOutput or str",
                task_id=task.id,
                agent_id=self.id,
            )

        update: dict = {"task_id": task.id}
        if not result.agent_id:
            update["agent_id"] = self.id
        if result.description is None:
            update["description"] = task.description
        if not result.execution_time_ms:
            update["execution_time_ms"] = elapsed_ms
        return result.model_copy(update=update)

    def __repr__(self) -> str:
        return f"Agent(id={self.id!r}, role={self.role!r})"
