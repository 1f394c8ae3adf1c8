"""
Lifecycle events emitted during a swarm run.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from agent_swarm.observability.context import TraceContext


class SwarmEventType(str, Enum):
    """Lifecycle event types."""

    # Swarm
    SWARM_STARTED = "SWARM_STARTED"
    SWARM_COMPLETED = "SWARM_COMPLETED"
    SWARM_FAILED = "SWARM_FAILED"
    MEMORY_RESET = "MEMORY_RESET"

    # Process
    PROCESS_STARTED = "PROCESS_STARTED"
    PROCESS_COMPLETED = "PROCESS_COMPLETED"
    PROCESS_FAILED = "PROCESS_FAILED"

    # Task
    TASK_STARTED = "TASK_STARTED"
    TASK_COMPLETED = "TASK_COMPLETED"
    TASK_FAILED = "TASK_FAILED"
    TASK_SKIPPED = "TASK_SKIPPED"

    # Agent
    AGENT_STARTED = "AGENT_STARTED"
    AGENT_COMPLETED = "AGENT_COMPLETED"
    AGENT_FAILED = "AGENT_FAILED"

    # Tool
    TOOL_STARTED = "TOOL_STARTED"
    TOOL_COMPLETED = "TOOL_COMPLETED"
    TOOL_FAILED = "TOOL_FAILED"

    # Memory / knowledge
    MEMORY_SAVED = "MEMORY_SAVED"
    MEMORY_SEARCHED = "MEMORY_SEARCHED"
    KNOWLEDGE_QUERIED = "KNOWLEDGE_QUERIED"


class SwarmEvent(BaseModel):
    """
    A lifecycle event enriched with trace and execution context.

    Trace fields are copied from the TraceContext that was current when the
    event was built (see ``from_context``), so an event can be attributed to
    its run and span after the fact.
    """

    model_config = ConfigDict(frozen=True)

    type: SwarmEventType
    message: str
    swarm_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Trace context
    correlation_id: Optional[str] = None
    trace_id: Optional[str] = None
    span_id: Optional[str] = None
    parent_span_id: Optional[str] = None

    # Execution context
    agent_id: Optional[str] = None
    agent_role: Optional[str] = None
    task_id: Optional[str] = None
    tool_name: Optional[str] = None

    # Timing
    duration_ms: Optional[int] = None
    elapsed_ms: Optional[int] = None

    # Outcome
    status: Optional[str] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None

    # Token usage
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None

    attributes: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_context(
        cls,
        event_type: SwarmEventType,
        message: str,
        context: Optional[TraceContext] = None,
        **fields: Any,
    ) -> "SwarmEvent":
        """
        Build an event enriched from ``context`` or the current trace context.

        Explicit ``fields`` win over values taken from the context.
        """
        context = context or TraceContext.current_or_none()
        if context is not None:
            enriched: dict[str, Any] = {
                "correlation_id": context.correlation_id,
                "trace_id": context.trace_id,
                "span_id": context.span_id,
                "parent_span_id": context.parent_span_id,
                "swarm_id": context.swarm_id,
                "agent_id": context.agent_id,
                "task_id": context.task_id,
                "tool_name": context.tool_name,
                "elapsed_ms": context.elapsed_ms,
            }
            for key, value in fields.items():
                if value is not None or key not in enriched:
                    enriched[key] = value
            fields = enriched
        return cls(type=event_type, message=message, **fields)

    @property
    def total_tokens(self) -> int:
        return (self.prompt_tokens or 0) + (self.completion_tokens or 0)

    @property
    def is_failure(self) -> bool:
        return "FAILED" in self.type.value

    def with_error(self, error: BaseException) -> "SwarmEvent":
        """Return a copy carrying the error type and message."""
        return self.model_copy(
            update={"error_type": type(error).__name__, "error_message": str(error)}
        )
