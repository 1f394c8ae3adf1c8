"""
Core result models for swarm execution.

Uses Pydantic for validation and serialization.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, computed_field, model_validator

from agent_swarm.core.state_machine import utc_now

SUMMARY_MAX_LENGTH = 100


class ProcessType(str, Enum):
    """Execution strategies for a swarm."""

    SEQUENTIAL = "sequential"
    HIERARCHICAL = "hierarchical"


def summarize(text: Optional[str], max_length: int = SUMMARY_MAX_LENGTH) -> str:
    """Shorten text to ``max_length`` characters, ending with an ellipsis."""
    if not text:
        return ""
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


class TaskOutput(BaseModel):
    """Output produced by one task execution."""

    task_id: str = Field(..., description="Task that produced this output")
    agent_id: Optional[str] = Field(default=None, description="Agent that executed the task")
    description: Optional[str] = None
    expected_output: Optional[str] = None
    raw_output: str = Field(default="", description="Text returned by the agent")
    summary: Optional[str] = Field(default=None, description="Short form of raw_output")

    successful: bool = True
    skipped: bool = False
    execution_time_ms: int = Field(default=0, ge=0)

    # Decision artifacts reported by the executor
    prompt: Optional[str] = None
    reasoning: Optional[str] = None
    tools_used: list[str] = Field(default_factory=list)

    prompt_tokens: Optional[int] = Field(default=None, ge=0)
    completion_tokens: Optional[int] = Field(default=None, ge=0)

    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def fill_summary(self) -> "TaskOutput":
        """Derive the summary from the raw output when none is given."""
        if self.summary is None:
            self.summary = summarize(self.raw_output)
        return self

    @computed_field
    @property
    def total_tokens(self) -> int:
        return (self.prompt_tokens or 0) + (self.completion_tokens or 0)


class SwarmOutput(BaseModel):
    """Aggregated result of one process run."""

    swarm_id: str
    correlation_id: Optional[str] = None
    raw_output: str = ""
    final_output: Optional[str] = None
    task_outputs: list[TaskOutput] = Field(default_factory=list)

    start_time: datetime = Field(default_factory=utc_now)
    end_time: Optional[datetime] = None
    usage_metrics: dict[str, Any] = Field(default_factory=dict)
    successful: bool = True

    @computed_field
    @property
    def execution_time_ms(self) -> int:
        if self.end_time is None:
            return 0
        return int((self.end_time - self.start_time).total_seconds() * 1000)

    def get_task_output(self, task_id: str) -> Optional[TaskOutput]:
        """Get the output of a task by ID."""
        for output in self.task_outputs:
            if output.task_id == task_id:
                return output
        return None

    @property
    def successful_outputs(self) -> list[TaskOutput]:
        return [o for o in self.task_outputs if o.successful]

    @property
    def failed_outputs(self) -> list[TaskOutput]:
        return [o for o in self.task_outputs if not o.successful]

    @property
    def success_rate(self) -> float:
        """Fraction of task outputs that succeeded (0.0 when empty)."""
        if not self.task_outputs:
            return 0.0
        return len(self.successful_outputs) / len(self.task_outputs)

    def summary(self) -> str:
        """Human-readable multi-line overview of the run."""
        lines = [
            f"Swarm {self.swarm_id}: {'successful' if self.successful else 'failed'}",
            f"Tasks: {len(self.task_outputs)} ({len(self.successful_outputs)} successful, "
            f"{len(self.failed_outputs)} failed)",
            f"Execution time: {self.execution_time_ms}ms",
        ]
        for output in self.task_outputs:
            marker = "skipped" if output.skipped else ("ok" if output.successful else "failed")
            lines.append(f"  - {output.task_id} [{marker}]: {output.summary}")
        return "\n".join(lines)
