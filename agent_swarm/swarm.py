"""
Swarm: the entry point for running a team of agents over a task set.

Each kickoff is one run with its own correlation id. The swarm wires the
process, the event bus, the decision tracer and the event store together.
"""

import asyncio
import logging
import threading
import uuid
from typing import Any, Optional, Sequence

from agent_swarm.agents.agent import Agent
from agent_swarm.config import ObservabilitySettings, get_settings
from agent_swarm.core.exceptions import ConfigurationError
from agent_swarm.core.models import ProcessType, SwarmOutput
from agent_swarm.core.state_machine import SwarmState, SwarmStateMachine
from agent_swarm.core.task import Task
from agent_swarm.events.bus import EventBus
from agent_swarm.events.models import SwarmEventType
from agent_swarm.memory.base import InMemoryMemory, Memory
from agent_swarm.observability.decision import DecisionTracer
from agent_swarm.observability.instrumentation import ObservabilityHelper
from agent_swarm.process import create_process
from agent_swarm.replay.recording import WorkflowRecording
from agent_swarm.replay.store import EventStore

logger = logging.getLogger(__name__)


class Swarm:
    """
    A team of agents and the tasks they work on.

    Tasks are copied for every kickoff (with ``{{ input.x }}`` references
    resolved), so one swarm can be kicked off repeatedly.
    """

    def __init__(
        self,
        agents: Sequence[Agent],
        tasks: Sequence[Task],
        process_type: ProcessType = ProcessType.SEQUENTIAL,
        manager_agent: Optional[Agent] = None,
        event_bus: Optional[EventBus] = None,
        decision_tracer: Optional[DecisionTracer] = None,
        event_store: Optional[EventStore] = None,
        settings: Optional[ObservabilitySettings] = None,
        swarm_id: Optional[str] = None,
        memory: Optional[Memory] = None,
    ):
        self.id = swarm_id or f"swarm-{uuid.uuid4().hex[:12]}"
        self.agents = list(agents)
        self.tasks = list(tasks)
        self.process_type = process_type
        self.manager_agent = manager_agent
        self.settings = settings or get_settings().observability

        self.event_bus = event_bus or EventBus()
        self.decision_tracer = decision_tracer or DecisionTracer(self.settings)
        self.event_store = event_store
        if event_store is not None:
            event_store.attach(self.event_bus)

        self.memory = memory
        if isinstance(memory, InMemoryMemory) and memory.event_bus is None:
            memory.event_bus = self.event_bus

        self.observability = ObservabilityHelper(self.settings, self.event_bus, self.decision_tracer)
        self._state = SwarmStateMachine()
        self._run_lock = threading.RLock()
        self._active_runs = 0
        self._any_run_failed = False
        self._run_states: dict[str, SwarmState] = {}
        self.last_output: Optional[SwarmOutput] = None
        self.last_correlation_id: Optional[str] = None

        self.validate()

    def validate(self) -> None:
        """
        Check the swarm configuration.

        Raises:
            ConfigurationError: If there are no agents or tasks, or a
                hierarchical swarm has no manager
        """
        if not self.agents:
            raise ConfigurationError("At least one agent is required")
        if not self.tasks:
            raise ConfigurationError("At least one task is required")
        if self.process_type == ProcessType.HIERARCHICAL and self.manager_agent is None:
            raise ConfigurationError("Manager agent is required for hierarchical process")

    @property
    def status(self) -> SwarmState:
        return self._state.state

    @property
    def configuration(self) -> dict[str, Any]:
        """Run configuration stored with recordings."""
        return {
            "swarm_id": self.id,
            "process_type": self.process_type.value,
            "agent_count": len(self.agents),
            "task_count": len(self.tasks),
            "manager_agent": self.manager_agent.role if self.manager_agent else None,
        }

    # ==================== Kickoff ====================

    def _begin_run(self) -> None:
        with self._run_lock:
            if self._active_runs == 0:
                self._any_run_failed = False
                self._state.transition(SwarmState.RUNNING, reason="Kickoff", triggered_by=self.id)
            self._active_runs += 1

    def _finish_run(self, correlation_id: Optional[str], state: SwarmState, reason: str) -> None:
        """Record a run's outcome; the swarm leaves RUNNING when its last active run ends."""
        with self._run_lock:
            if correlation_id is not None:
                self._run_states[correlation_id] = state
            self._active_runs -= 1
            if state == SwarmState.FAILED:
                self._any_run_failed = True
            if self._active_runs == 0:
                final = SwarmState.FAILED if self._any_run_failed else SwarmState.COMPLETED
                self._state.transition(final, reason=reason)

    @property
    def active_runs(self) -> int:
        with self._run_lock:
            return self._active_runs

    def run_status(self, correlation_id: str) -> Optional[SwarmState]:
        """State of one run: RUNNING, COMPLETED or FAILED; None if unknown."""
        with self._run_lock:
            return self._run_states.get(correlation_id)

    def kickoff(self, inputs: Optional[dict[str, Any]] = None) -> SwarmOutput:
        """
        Run the swarm once.

        Runs may overlap (see ``kickoff_async``); each gets its own task
        copies and correlation id. The swarm status is RUNNING while any run
        is active, then COMPLETED, or FAILED if any overlapping run failed.

        Args:
            inputs: Values for ``{{ input.x }}`` references in task text

        Returns:
            SwarmOutput carrying the run's correlation id

        Raises:
            ConfigurationError: If the task set cannot be run
            ProcessExecutionError: If a task or manager pass fails
        """
        inputs = inputs or {}
        tasks = [task.interpolate_inputs(inputs) for task in self.tasks]
        process = create_process(
            self.process_type,
            self.agents,
            manager_agent=self.manager_agent,
            event_bus=self.event_bus,
            decision_tracer=self.decision_tracer,
            settings=self.settings,
            memory=self.memory,
        )

        self._begin_run()
        correlation_id: Optional[str] = None
        try:
            with self.observability.swarm_span(self.id, len(self.agents), len(tasks)) as span:
                correlation_id = span.correlation_id
                self.last_correlation_id = correlation_id
                with self._run_lock:
                    self._run_states[correlation_id] = SwarmState.RUNNING
                self.observability.emit(
                    SwarmEventType.SWARM_STARTED,
                    f"Swarm {self.id} started",
                    status="RUNNING",
                    attributes=self.configuration,
                )
                try:
                    output = process.execute(tasks, inputs)
                except Exception as e:
                    self.observability.emit(
                        SwarmEventType.SWARM_FAILED,
                        f"Swarm {self.id} failed: {e}",
                        error=e,
                        status="FAILED",
                        duration_ms=span.elapsed_ms,
                    )
                    raise

                self.observability.emit(
                    SwarmEventType.SWARM_COMPLETED,
                    f"Swarm {self.id} completed",
                    status="COMPLETED",
                    duration_ms=span.elapsed_ms,
                    prompt_tokens=output.usage_metrics.get("total_prompt_tokens"),
                    completion_tokens=output.usage_metrics.get("total_completion_tokens"),
                )
        except Exception as e:
            self._finish_run(correlation_id, SwarmState.FAILED, reason=str(e))
            raise
        self._finish_run(correlation_id, SwarmState.COMPLETED, reason="All tasks finished")

        output = output.model_copy(update={"swarm_id": self.id, "correlation_id": correlation_id})
        self.last_output = output
        return output

    def kickoff_for_each(self, inputs_list: Sequence[dict[str, Any]]) -> list[SwarmOutput]:
        """Kick off once per inputs mapping, in order."""
        return [self.kickoff(inputs) for inputs in inputs_list]

    async def kickoff_async(self, inputs: Optional[dict[str, Any]] = None) -> SwarmOutput:
        """
        Run ``kickoff`` on an executor thread.

        The thread starts with no trace context, so the run gets its own
        root span.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.kickoff, inputs)

    async def kickoff_for_each_async(self, inputs_list: Sequence[dict[str, Any]]) -> list[SwarmOutput]:
        """
        Kick off once per inputs mapping, all runs concurrently.

        Outputs are in input order. The first failure propagates once every
        run has finished.
        """
        results = await asyncio.gather(
            *(self.kickoff_async(inputs) for inputs in inputs_list),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return list(results)

    # ==================== Memory ====================

    def reset_memory(self) -> None:
        """Clear the swarm memory and publish MEMORY_RESET."""
        if self.memory is not None:
            self.memory.clear()
        logger.info(f"Swarm {self.id} memory reset")
        self.observability.emit(
            SwarmEventType.MEMORY_RESET,
            "Swarm memory has been reset",
            swarm_id=self.id,
        )

    # ==================== Replay / explanations ====================

    def get_recording(self, correlation_id: Optional[str] = None) -> Optional[WorkflowRecording]:
        """Recording of a run (the latest by default), if an event store is attached."""
        correlation_id = correlation_id or self.last_correlation_id
        if self.event_store is None or correlation_id is None:
            return None
        return self.event_store.create_recording(correlation_id, self.configuration)

    def explain(self, correlation_id: Optional[str] = None) -> str:
        """Decision explanation of a run (the latest by default)."""
        correlation_id = correlation_id or self.last_correlation_id
        if correlation_id is None:
            return "No run has been kicked off"
        return self.decision_tracer.explain_workflow(correlation_id)
