"""
Replayable workflow recordings.

A WorkflowRecording is an immutable snapshot of one run's events: a timeline
in timestamp order plus aggregate statistics. It serializes to a camelCase
JSON document and loads back to an equal recording.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from agent_swarm.events.models import SwarmEvent

STATUS_FAILED = "failed"
STATUS_COMPLETED = "completed"
STATUS_UNKNOWN = "unknown"


def _json_safe(value: Any) -> Any:
    """Convert attribute values to JSON-native types."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_safe(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def classify_status(event_types: Iterable[str]) -> str:
    """
    Derive a run status from event type names.

    Any type containing "FAILED" makes the run failed; otherwise any type
    containing "COMPLETED" makes it completed.
    """
    names = list(event_types)
    if any("FAILED" in name for name in names):
        return STATUS_FAILED
    if any("COMPLETED" in name for name in names):
        return STATUS_COMPLETED
    return STATUS_UNKNOWN


class _RecordingModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class EventRecord(_RecordingModel):
    """One timeline entry."""

    event_type: str
    message: str
    timestamp: datetime
    elapsed_ms: Optional[int] = None
    duration_ms: Optional[int] = None
    agent_id: Optional[str] = None
    agent_role: Optional[str] = None
    task_id: Optional[str] = None
    tool_name: Optional[str] = None
    status: Optional[str] = None
    error_type: Optional[str] = None
    attributes: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_event(cls, event: SwarmEvent) -> "EventRecord":
        return cls(
            event_type=event.type.value,
            message=event.message,
            timestamp=event.timestamp,
            elapsed_ms=event.elapsed_ms,
            duration_ms=event.duration_ms,
            agent_id=event.agent_id,
            agent_role=event.agent_role,
            task_id=event.task_id,
            tool_name=event.tool_name,
            status=event.status,
            error_type=event.error_type,
            attributes=_json_safe(event.attributes),
        )


class WorkflowSummary(_RecordingModel):
    """Aggregate statistics of a recording."""

    total_events: int = 0
    unique_agents: int = 0
    unique_tasks: int = 0
    unique_tools: int = 0
    total_prompt_tokens: int = 0
    total_completion_tokens: int = 0
    total_duration_ms: int = 0
    error_count: int = 0

    @computed_field(alias="totalTokens")
    @property
    def total_tokens(self) -> int:
        return self.total_prompt_tokens + self.total_completion_tokens

    @classmethod
    def from_events(cls, events: list[SwarmEvent]) -> "WorkflowSummary":
        agents = {e.agent_id for e in events if e.agent_id}
        tasks = {e.task_id for e in events if e.task_id}
        tools = {e.tool_name for e in events if e.tool_name}
        return cls(
            total_events=len(events),
            unique_agents=len(agents),
            unique_tasks=len(tasks),
            unique_tools=len(tools),
            total_prompt_tokens=sum(e.prompt_tokens or 0 for e in events),
            total_completion_tokens=sum(e.completion_tokens or 0 for e in events),
            total_duration_ms=sum(e.duration_ms or 0 for e in events),
            error_count=sum(1 for e in events if "FAILED" in e.type.value),
        )


class WorkflowRecording(_RecordingModel):
    """Immutable snapshot of a completed run."""

    correlation_id: Optional[str] = None
    swarm_id: Optional[str] = None
    start_time: datetime
    end_time: datetime
    duration_ms: int
    status: str
    timeline: tuple[EventRecord, ...] = ()
    summary: WorkflowSummary = Field(default_factory=WorkflowSummary)
    configuration: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_events(
        cls,
        events: Iterable[SwarmEvent],
        configuration: Optional[dict[str, Any]] = None,
    ) -> "WorkflowRecording":
        """
        Build a recording from a run's events.

        Raises:
            ValueError: If ``events`` is empty
        """
        ordered = sorted(events, key=lambda e: e.timestamp)
        if not ordered:
            raise ValueError("Cannot create a recording from an empty event list")

        first, last = ordered[0], ordered[-1]
        swarm_id = next((e.swarm_id for e in ordered if e.swarm_id), None)
        correlation_id = next((e.correlation_id for e in ordered if e.correlation_id), None)

        return cls(
            correlation_id=correlation_id,
            swarm_id=swarm_id,
            start_time=first.timestamp,
            end_time=last.timestamp,
            duration_ms=int((last.timestamp - first.timestamp).total_seconds() * 1000),
            status=classify_status(e.type.value for e in ordered),
            timeline=tuple(EventRecord.from_event(e) for e in ordered),
            summary=WorkflowSummary.from_events(ordered),
            configuration=_json_safe(configuration or {}),
        )

    # ==================== Serialization ====================

    def to_json(self, indent: Optional[int] = 2) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)

    @classmethod
    def from_json(cls, data: str | bytes) -> "WorkflowRecording":
        return cls.model_validate_json(data)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def save_to_file(self, path: str | Path) -> Path:
        """Write the recording as JSON, creating parent directories."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding="utf-8")
        return path

    @classmethod
    def load_from_file(cls, path: str | Path) -> "WorkflowRecording":
        return cls.from_json(Path(path).read_text(encoding="utf-8"))

    # ==================== Views ====================

    @property
    def is_failed(self) -> bool:
        return self.status == STATUS_FAILED

    def events_for_task(self, task_id: str) -> list[EventRecord]:
        return [record for record in self.timeline if record.task_id == task_id]

    def events_of_type(self, event_type: str) -> list[EventRecord]:
        return [record for record in self.timeline if record.event_type == event_type]
