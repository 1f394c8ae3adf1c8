"""
Unit tests for swarm events and the event bus.
"""

import logging

import pytest

from agent_swarm.events import EventBus, SwarmEvent, SwarmEventType
from agent_swarm.observability import TraceContext


class TestSwarmEvent:
    """Tests for SwarmEvent enrichment."""

    def test_from_context_enriches(self):
        """Test trace and execution ids come from the current span."""
        with TraceContext.span(root=True, swarm_id="swarm-1"):
            with TraceContext.span(agent_id="agent-1", task_id="t1") as span:
                event = SwarmEvent.from_context(SwarmEventType.TASK_STARTED, "Task started")

        assert event.correlation_id == span.correlation_id
        assert event.trace_id == span.trace_id
        assert event.span_id == span.span_id
        assert event.parent_span_id == span.parent_span_id
        assert event.swarm_id == "swarm-1"
        assert event.agent_id == "agent-1"
        assert event.task_id == "t1"
        assert event.elapsed_ms >= 0
        assert event.timestamp.tzinfo is not None

    def test_explicit_fields_win(self):
        """Test explicit values override the context, None does not."""
        with TraceContext.span(root=True, task_id="t1"):
            event = SwarmEvent.from_context(
                SwarmEventType.TASK_FAILED,
                "failed",
                task_id="t2",
                agent_id=None,
                status="FAILED",
            )

        assert event.task_id == "t2"
        assert event.status == "FAILED"

    def test_explicit_context(self):
        """Test an explicit context is used over the current one."""
        other = TraceContext(swarm_id="other")
        TraceContext.create(swarm_id="current")

        event = SwarmEvent.from_context(SwarmEventType.SWARM_STARTED, "go", context=other)

        assert event.swarm_id == "other"

    def test_without_context(self):
        """Test events can be built outside any span."""
        event = SwarmEvent.from_context(SwarmEventType.MEMORY_RESET, "reset")

        assert event.correlation_id is None
        assert event.elapsed_ms is None

    def test_failure_and_tokens(self):
        """Test derived properties."""
        event = SwarmEvent(
            type=SwarmEventType.TOOL_FAILED,
            message="x",
            prompt_tokens=3,
            completion_tokens=4,
        )

        assert event.is_failure
        assert event.total_tokens == 7
        assert not SwarmEvent(type=SwarmEventType.TOOL_COMPLETED, message="x").is_failure

    def test_with_error(self):
        """Test an error is attached to a copy."""
        event = SwarmEvent(type=SwarmEventType.TASK_FAILED, message="x")

        failed = event.with_error(ValueError("bad input"))

        assert failed.error_type == "ValueError"
        assert failed.error_message == "bad input"
        assert event.error_type is None

    def test_event_types_are_strings(self):
        """Test event types serialize as their names."""
        assert SwarmEventType.TASK_SKIPPED.value == "TASK_SKIPPED"
        assert SwarmEventType("KNOWLEDGE_QUERIED") is SwarmEventType.KNOWLEDGE_QUERIED


class TestEventBus:
    """Tests for EventBus."""

    def test_publish_to_all_listeners(self, event_bus):
        """Test every listener receives the event in order."""
        received: list[str] = []
        event_bus.subscribe(lambda e: received.append("first"))
        event_bus.subscribe(lambda e: received.append("second"))

        event_bus.emit(SwarmEventType.SWARM_STARTED, "go")

        assert received == ["first", "second"]

    def test_type_filter(self, event_bus):
        """Test listeners only get the types they asked for."""
        received: list[SwarmEvent] = []
        event_bus.subscribe(received.append, event_types=[SwarmEventType.TASK_FAILED])

        event_bus.emit(SwarmEventType.TASK_STARTED, "start")
        event_bus.emit(SwarmEventType.TASK_FAILED, "fail")

        assert [e.type for e in received] == [SwarmEventType.TASK_FAILED]

    def test_unsubscribe(self, event_bus):
        """Test the returned callable removes the listener."""
        received: list[SwarmEvent] = []
        unsubscribe = event_bus.subscribe(received.append)

        unsubscribe()
        event_bus.emit(SwarmEventType.SWARM_STARTED, "go")

        assert received == []
        assert event_bus.listener_count == 0

    def test_failing_listener_isolated(self, event_bus, caplog):
        """Test one failing listener does not block the others."""
        received: list[SwarmEvent] = []

        def broken(event):
            raise RuntimeError("listener bug")

        event_bus.subscribe(broken)
        event_bus.subscribe(received.append)

        with caplog.at_level(logging.ERROR, logger="agent_swarm.events.bus"):
            event_bus.emit(SwarmEventType.SWARM_STARTED, "go")

        assert len(received) == 1
        assert "listener bug" in caplog.text
        assert caplog.records[0].exc_info is not None

    def test_emit_returns_enriched_event(self, event_bus):
        """Test emit builds the event from the current span."""
        with TraceContext.span(root=True, swarm_id="swarm-1") as run:
            event = event_bus.emit(SwarmEventType.SWARM_STARTED, "go", status="RUNNING")

        assert event.correlation_id == run.correlation_id
        assert event.status == "RUNNING"

    @pytest.mark.parametrize("count", [0, 3])
    def test_listener_count(self, count):
        """Test listener bookkeeping."""
        bus = EventBus()
        for _ in range(count):
            bus.subscribe(lambda e: None)

        assert bus.listener_count == count
