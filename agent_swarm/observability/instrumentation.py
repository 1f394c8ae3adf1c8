"""
Instrumentation shared by the process engines and the swarm.

Wraps units of work in trace spans and turns their outcomes into lifecycle
events, structured log lines and decision nodes.
"""

import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator, Optional, TYPE_CHECKING

from agent_swarm.config import ObservabilitySettings
from agent_swarm.core.models import TaskOutput
from agent_swarm.core.task import Task, context_text
from agent_swarm.events.bus import EventBus
from agent_swarm.events.models import SwarmEvent, SwarmEventType
from agent_swarm.observability.context import TraceContext
from agent_swarm.observability.decision import DecisionNode, DecisionTracer
from agent_swarm.observability.structured_logging import StructuredLogger

if TYPE_CHECKING:
    from agent_swarm.agents.agent import Agent

logger = logging.getLogger(__name__)


class ObservabilityHelper:
    """Span, event, log and decision plumbing for one engine instance."""

    def __init__(
        self,
        settings: ObservabilitySettings,
        event_bus: Optional[EventBus] = None,
        decision_tracer: Optional[DecisionTracer] = None,
    ):
        self.settings = settings
        self.event_bus = event_bus
        self.decision_tracer = decision_tracer
        self.structured = StructuredLogger(settings)

    # ==================== Events ====================

    def emit(
        self,
        event_type: SwarmEventType,
        message: str,
        error: Optional[BaseException] = None,
        **fields: Any,
    ) -> Optional[SwarmEvent]:
        """Publish an event built from the current trace context."""
        if self.event_bus is None:
            return None
        if error is not None:
            fields.setdefault("error_type", type(error).__name__)
            fields.setdefault("error_message", str(error))
        return self.event_bus.emit(event_type, message, **fields)

    # ==================== Spans ====================

    @contextmanager
    def swarm_span(
        self,
        swarm_id: str,
        agent_count: int,
        task_count: int,
    ) -> Iterator[TraceContext]:
        """
        Run a swarm kickoff as the root span of a new run.

        Starts and completes the run's decision trace.
        """
        with TraceContext.span(root=True, swarm_id=swarm_id) as context:
            self.structured.log_swarm_start(swarm_id, agent_count, task_count)
            if self.decision_tracer is not None:
                self.decision_tracer.start_trace(context.correlation_id, swarm_id)
            try:
                yield context
            except Exception as e:
                self.structured.log_swarm_error(swarm_id, e)
                self.structured.log_swarm_complete(swarm_id, False, context.elapsed_ms)
                raise
            else:
                self.structured.log_swarm_complete(swarm_id, True, context.elapsed_ms)
            finally:
                context.record_timing("swarm_execution", context.elapsed_ms)
                if self.decision_tracer is not None:
                    self.decision_tracer.complete_trace(context.correlation_id)

    @contextmanager
    def task_span(
        self,
        task: Task,
        agent: Optional["Agent"],
        parent: Optional[TraceContext] = None,
    ) -> Iterator[TraceContext]:
        """
        Run one task execution in a child span.

        Args:
            task: Task being executed
            agent: Agent executing it
            parent: Explicit parent span, required when running on a
                thread other than the one that owns the process span
        """
        fields: dict[str, Any] = {"task_id": task.id}
        if agent is not None:
            fields["agent_id"] = agent.id
            fields["attributes"] = {"agent_role": agent.role}

        with TraceContext.span(parent=parent, **fields) as context:
            self.structured.log_task_start(task.id, task.description, agent.role if agent else None)
            started = time.perf_counter()
            try:
                yield context
            finally:
                duration_ms = int((time.perf_counter() - started) * 1000)
                context.record_timing("task_execution", duration_ms)
                self.structured.log_task_complete(task.id, task.status.value, duration_ms)

    # ==================== Decisions ====================

    @property
    def decisions_enabled(self) -> bool:
        return self.decision_tracer is not None and self.decision_tracer.enabled

    def record_task_decision(
        self,
        task: Task,
        agent: "Agent",
        context: list[TaskOutput],
        output: TaskOutput,
    ) -> Optional[DecisionNode]:
        """Record the agent's output for ``task`` as a decision node."""
        self.structured.log_decision(agent.id, task.id, output.summary, output.reasoning)
        if not self.decisions_enabled:
            return None

        tracer = self.decision_tracer
        node = tracer.create_decision(
            agent_id=agent.id,
            agent_role=agent.role,
            agent_goal=agent.goal,
            agent_backstory=agent.backstory,
            task_id=task.id,
            task_description=task.description,
            expected_output=task.expected_output,
            input_context=context_text(context) or None,
            prompt=tracer.capture_prompt(output.prompt),
            raw_response=tracer.capture_response(output.raw_output),
            decision=output.summary,
            reasoning=output.reasoning,
            tools_used=tuple(output.tools_used),
            latency_ms=output.execution_time_ms,
        )
        tracer.record_decision(node)
        return node

    def record_delegation(
        self,
        manager: "Agent",
        worker: "Agent",
        task: Task,
        strategy: str,
        reason: str,
    ) -> Optional[DecisionNode]:
        """Record a manager's choice of worker as a decision node."""
        self.structured.log_delegation(manager.id, worker.id, task.id, reason)
        if not self.decisions_enabled:
            return None

        tracer = self.decision_tracer
        node = tracer.create_decision(
            agent_id=manager.id,
            agent_role=manager.role,
            agent_goal=manager.goal,
            task_id=task.id,
            task_description=task.description,
            expected_output=task.expected_output,
            decision=f"Delegated task '{task.id}' to {worker.role}",
            reasoning=reason,
            analysis_metadata={
                "delegation_strategy": strategy,
                "worker_id": worker.id,
                "worker_role": worker.role,
            },
        )
        tracer.record_decision(node)
        return node
