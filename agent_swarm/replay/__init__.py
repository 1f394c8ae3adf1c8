"""Event storage and replayable workflow recordings."""

from agent_swarm.replay.recording import (
    EventRecord,
    WorkflowRecording,
    WorkflowSummary,
    classify_status,
)
from agent_swarm.replay.store import EventStore, InMemoryEventStore

__all__ = [
    "EventRecord",
    "WorkflowRecording",
    "WorkflowSummary",
    "classify_status",
    "EventStore",
    "InMemoryEventStore",
]
