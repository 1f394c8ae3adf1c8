"""
Base process implementation.

A process drives one run over a task set: it validates and orders the tasks,
executes each one in its own trace span, and reports progress as lifecycle
events.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Optional, Sequence

from agent_swarm.agents.agent import Agent
from agent_swarm.config import ObservabilitySettings, get_settings
from agent_swarm.core.exceptions import ConfigurationError
from agent_swarm.core.graph import TaskGraph
from agent_swarm.core.models import ProcessType, SwarmOutput, TaskOutput
from agent_swarm.core.state_machine import utc_now
from agent_swarm.core.task import Task
from agent_swarm.events.bus import EventBus
from agent_swarm.events.models import SwarmEventType
from agent_swarm.memory.base import Memory
from agent_swarm.observability.context import TraceContext
from agent_swarm.observability.decision import DecisionTracer
from agent_swarm.observability.instrumentation import ObservabilityHelper

logger = logging.getLogger(__name__)


class Process(ABC):
    """
    Base class for execution strategies.

    Provides:
    - Dependency validation shared by all strategies
    - Per-task spans, lifecycle events and decision recording
    - Hand-off of a task to a worker thread with an explicit parent span
    """

    process_type: ProcessType

    def __init__(
        self,
        agents: Sequence[Agent],
        event_bus: Optional[EventBus] = None,
        decision_tracer: Optional[DecisionTracer] = None,
        settings: Optional[ObservabilitySettings] = None,
        memory: Optional[Memory] = None,
    ):
        self.agents = list(agents)
        self.memory = memory
        self.event_bus = event_bus
        self.decision_tracer = decision_tracer
        self.settings = settings or get_settings().observability
        self.observability = ObservabilityHelper(self.settings, event_bus, decision_tracer)

    @abstractmethod
    def execute(
        self,
        tasks: Sequence[Task],
        inputs: Optional[dict[str, Any]] = None,
    ) -> SwarmOutput:
        """
        Run the tasks. Implemented by subclasses.

        Raises:
            ConfigurationError: If the task set or agents are misconfigured
            ProcessExecutionError: If a task or manager pass fails
        """
        pass

    @abstractmethod
    def validate_tasks(self, tasks: Sequence[Task]) -> None:
        """Raise ConfigurationError if the run cannot start."""
        pass

    # ==================== Validation ====================

    def _validate_graph(self, tasks: Sequence[Task]) -> None:
        if not tasks:
            raise ConfigurationError("Tasks list cannot be empty")
        TaskGraph(tasks).validate().raise_for_errors()

    # ==================== Task execution ====================

    def _run_task(
        self,
        task: Task,
        prior_outputs: list[TaskOutput],
        parent: Optional[TraceContext] = None,
        attributes: Optional[dict[str, Any]] = None,
    ) -> TaskOutput:
        """
        Execute one task inside its own span.

        Emits TASK_STARTED, then TASK_SKIPPED, TASK_COMPLETED or TASK_FAILED.
        Failures propagate after the failure event.
        """
        agent = task.agent
        agent_role = agent.role if agent else None
        context = task.relevant_context(prior_outputs)

        with self.observability.task_span(task, agent, parent=parent) as span:
            self.observability.emit(
                SwarmEventType.TASK_STARTED,
                f"Task started: {task.id}",
                agent_role=agent_role,
                status="RUNNING",
                attributes=dict(attributes or {}),
            )
            try:
                output = task.execute(prior_outputs)
            except Exception as e:
                self.observability.structured.log_task_error(task.id, e)
                self.observability.emit(
                    SwarmEventType.TASK_FAILED,
                    f"Task failed: {task.id}",
                    error=e,
                    agent_role=agent_role,
                    status=task.status.value,
                    duration_ms=span.elapsed_ms,
                )
                raise

            if output.skipped:
                self.observability.structured.log_task_skipped(task.id)
                self.observability.emit(
                    SwarmEventType.TASK_SKIPPED,
                    f"Task skipped: {task.id}",
                    agent_role=agent_role,
                    status=task.status.value,
                    duration_ms=span.elapsed_ms,
                )
                return output

            self.observability.emit(
                SwarmEventType.TASK_COMPLETED,
                f"Task completed: {task.id}",
                agent_role=agent_role,
                status=task.status.value,
                duration_ms=output.execution_time_ms,
                prompt_tokens=output.prompt_tokens,
                completion_tokens=output.completion_tokens,
                attributes={"tools_used": list(output.tools_used)},
            )
            if output.prompt_tokens is not None or output.completion_tokens is not None:
                self.observability.structured.log_token_usage(
                    agent.id, output.prompt_tokens or 0, output.completion_tokens or 0
                )
            self.observability.record_task_decision(task, agent, context, output)
            self._remember(agent, task, output)
            return output

    def _remember(self, agent: Optional[Agent], task: Task, output: TaskOutput) -> None:
        """Save a completed output to the agent's memory, else the swarm memory."""
        memory = agent.memory if agent is not None and agent.memory is not None else self.memory
        if memory is None or not output.raw_output:
            return
        memory.save(agent.id if agent else None, output.raw_output, {"task_id": task.id})

    def _run_task_in_worker(
        self,
        task: Task,
        prior_outputs: list[TaskOutput],
        attributes: Optional[dict[str, Any]] = None,
    ) -> TaskOutput:
        """
        Execute a task on a worker thread and wait for its result.

        The worker thread starts without a trace context; the current span
        is handed over as the explicit parent.
        """
        parent = TraceContext.current_or_none()
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="swarm-task") as pool:
            future = pool.submit(self._run_task, task, prior_outputs, parent, attributes)
            return future.result()

    # ==================== Results ====================

    def _run_id(self, span: TraceContext) -> str:
        return span.swarm_id or f"{self.process_type.value}-{uuid.uuid4().hex[:12]}"

    def _build_output(
        self,
        swarm_id: str,
        span: TraceContext,
        outputs: list[TaskOutput],
        start_time: datetime,
        final_output: Optional[str],
        usage_metrics: dict[str, Any],
        successful: bool = True,
    ) -> SwarmOutput:
        metrics = {
            "total_prompt_tokens": sum(o.prompt_tokens or 0 for o in outputs),
            "total_completion_tokens": sum(o.completion_tokens or 0 for o in outputs),
        }
        metrics["total_tokens"] = metrics["total_prompt_tokens"] + metrics["total_completion_tokens"]
        metrics.update(usage_metrics)
        return SwarmOutput(
            swarm_id=swarm_id,
            correlation_id=span.correlation_id,
            raw_output=final_output or "",
            final_output=final_output,
            task_outputs=list(outputs),
            start_time=start_time,
            end_time=utc_now(),
            usage_metrics=metrics,
            successful=successful,
        )
