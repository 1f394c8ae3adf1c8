"""
Hierarchical execution strategy.

A manager agent plans the run, each task is delegated to a worker chosen by
a deterministic heuristic, and the manager synthesizes the final output from
the workers' results.
"""

import logging
import re
import uuid
from typing import Any, Optional, Sequence

from agent_swarm.agents.agent import Agent
from agent_swarm.config import ObservabilitySettings
from agent_swarm.core.exceptions import ConfigurationError, ProcessExecutionError
from agent_swarm.core.graph import order_tasks
from agent_swarm.core.models import ProcessType, SwarmOutput, TaskOutput
from agent_swarm.core.state_machine import utc_now
from agent_swarm.core.task import Task
from agent_swarm.events.bus import EventBus
from agent_swarm.events.models import SwarmEventType
from agent_swarm.memory.base import Memory
from agent_swarm.observability.context import TraceContext
from agent_swarm.observability.decision import DecisionTracer
from agent_swarm.process.base import Process

logger = logging.getLogger(__name__)

# Per-task output length included in the synthesis prompt
SYNTHESIS_OUTPUT_LIMIT = 3000

# Delegation strategies, in the order they are tried
TOOL_OVERLAP = "tool_overlap"
KEYWORD_OVERLAP = "keyword_overlap"
ROUND_ROBIN = "round_robin"

_STOP_WORDS = frozenset({
    "the", "and", "for", "with", "that", "this", "from", "into", "your", "about",
    "are", "was", "will", "its", "all", "any", "each", "use", "using", "based",
    "make", "provide", "create", "write", "task", "their", "them", "then", "than",
})

_WORD_PATTERN = re.compile(r"[a-z0-9]+")


def extract_keywords(text: str) -> set[str]:
    """Lower-cased words of three or more characters, minus stop words."""
    return {
        word for word in _WORD_PATTERN.findall(text.lower())
        if len(word) >= 3 and word not in _STOP_WORDS
    }


class HierarchicalProcess(Process):
    """
    Manager-led execution.

    The manager runs two passes of its own (coordination and synthesis) and
    is never chosen as a worker, even if it is in the agent collection.
    """

    process_type = ProcessType.HIERARCHICAL

    def __init__(
        self,
        agents: Sequence[Agent],
        manager_agent: Agent,
        event_bus: Optional[EventBus] = None,
        decision_tracer: Optional[DecisionTracer] = None,
        settings: Optional[ObservabilitySettings] = None,
        memory: Optional[Memory] = None,
    ):
        if manager_agent is None:
            raise ConfigurationError("Manager agent is required for hierarchical process")
        workers = [agent for agent in agents if agent.id != manager_agent.id]
        super().__init__(workers, event_bus, decision_tracer, settings, memory)
        self.manager_agent = manager_agent
        self._round_robin = 0

    @property
    def workers(self) -> list[Agent]:
        return self.agents

    def validate_tasks(self, tasks: Sequence[Task]) -> None:
        """
        Check that the run can start.

        Raises:
            ConfigurationError: On an empty task set, an empty worker pool, a
                manager that cannot delegate, or an invalid dependency graph
        """
        if not tasks:
            raise ConfigurationError("Tasks list cannot be empty")
        if not self.workers:
            raise ConfigurationError("At least one worker agent is required for hierarchical process")
        if not self.manager_agent.allow_delegation:
            raise ConfigurationError(
                f"Manager agent '{self.manager_agent.role}' must allow delegation "
                "for hierarchical process"
            )
        self._validate_graph(tasks)

    # ==================== Worker selection ====================

    def select_worker(self, task: Task) -> tuple[Agent, str, str]:
        """
        Choose the worker for a task.

        Tried in order: most tool names shared with the task, most task
        keywords found in the worker's role and goal, then round-robin.
        Ties go to the worker listed first.

        Returns:
            (worker, strategy, reason)
        """
        required_tools = {tool.name.lower() for tool in task.tools}
        if required_tools:
            best, score = self._best_worker(
                lambda worker: len(required_tools & {name.lower() for name in worker.tool_names})
            )
            if score > 0:
                return best, TOOL_OVERLAP, (
                    f"{best.role} provides {score} of the {len(required_tools)} tools the task requires"
                )

        keywords = extract_keywords(task.description)
        if keywords:
            best, score = self._best_worker(
                lambda worker: len(keywords & extract_keywords(f"{worker.role} {worker.goal}"))
            )
            if score > 0:
                return best, KEYWORD_OVERLAP, (
                    f"{best.role} matches {score} keyword(s) of the task description"
                )

        worker = self.workers[self._round_robin % len(self.workers)]
        self._round_robin += 1
        return worker, ROUND_ROBIN, f"No capability match; assigned {worker.role} in rotation"

    def _best_worker(self, score_fn) -> tuple[Agent, int]:
        best, best_score = self.workers[0], -1
        for worker in self.workers:
            score = score_fn(worker)
            if score > best_score:
                best, best_score = worker, score
        return best, best_score

    # ==================== Execution ====================

    def execute(
        self,
        tasks: Sequence[Task],
        inputs: Optional[dict[str, Any]] = None,
    ) -> SwarmOutput:
        """
        Run coordination, delegated tasks and synthesis.

        Returns:
            SwarmOutput whose final output is the manager's synthesis

        Raises:
            ConfigurationError: If validation fails
            ProcessExecutionError: If any pass fails; ``stage`` is
                "coordination", "synthesis" or the delegated task id
        """
        start_time = utc_now()
        outputs: list[TaskOutput] = []
        delegated: list[TaskOutput] = []
        manager_passes = 0
        self._round_robin = 0

        with TraceContext.span(attributes={"process_type": self.process_type.value}) as span:
            swarm_id = self._run_id(span)
            logger.info(
                f"Starting hierarchical process {swarm_id}: {len(tasks)} tasks, "
                f"{len(self.workers)} workers"
            )
            self.observability.emit(
                SwarmEventType.PROCESS_STARTED,
                "Hierarchical process execution started",
                attributes={"task_count": len(tasks), "worker_count": len(self.workers)},
            )

            stage = "validation"
            try:
                self.validate_tasks(tasks)
                ordered = order_tasks(tasks)

                stage = "coordination"
                plan = self._run_task(
                    self._coordination_task(ordered, inputs),
                    [],
                    attributes={"stage": stage},
                )
                outputs.append(plan)
                manager_passes += 1

                for task in ordered:
                    stage = task.id
                    worker, strategy, reason = self.select_worker(task)
                    task.assign_agent(worker)
                    self.observability.record_delegation(
                        self.manager_agent, worker, task, strategy, reason
                    )
                    logger.info(f"Delegating task {task.id} to {worker.role} ({strategy})")

                    output = self._run_task(
                        task,
                        outputs,
                        attributes={
                            "stage": "delegation",
                            "delegated_by": self.manager_agent.id,
                            "delegation_strategy": strategy,
                        },
                    )
                    outputs.append(output)
                    delegated.append(output)

                stage = "synthesis"
                final = self._run_task(
                    self._synthesis_task(delegated),
                    outputs,
                    attributes={"stage": stage},
                )
                outputs.append(final)
                manager_passes += 1

            except ConfigurationError as e:
                logger.error(f"Hierarchical process {swarm_id} misconfigured: {e}")
                self.observability.emit(
                    SwarmEventType.PROCESS_FAILED,
                    f"Hierarchical process configuration invalid: {e}",
                    error=e,
                    status="FAILED",
                )
                raise

            except Exception as e:
                logger.error(f"Hierarchical process {swarm_id} failed during {stage}: {e}")
                self.observability.emit(
                    SwarmEventType.PROCESS_FAILED,
                    f"Hierarchical process failed during {stage}",
                    error=e,
                    status="FAILED",
                    duration_ms=span.elapsed_ms,
                    attributes={"stage": stage},
                )
                partial = self._build_output(
                    swarm_id,
                    span,
                    outputs,
                    start_time,
                    final_output=None,
                    usage_metrics={
                        "total_tasks": len(outputs),
                        "delegated_tasks": len(delegated),
                        "manager_tasks": manager_passes,
                        "failed_stage": stage,
                    },
                    successful=False,
                )
                raise ProcessExecutionError(
                    f"Hierarchical process failed during {stage}: {e}",
                    stage=stage,
                    partial_output=partial,
                    task_id=getattr(e, "task_id", None),
                ) from e

            self.observability.emit(
                SwarmEventType.PROCESS_COMPLETED,
                "Hierarchical process completed",
                status="COMPLETED",
                duration_ms=span.elapsed_ms,
            )

            return self._build_output(
                swarm_id,
                span,
                outputs,
                start_time,
                final_output=final.raw_output,
                usage_metrics={
                    "total_tasks": len(outputs),
                    "delegated_tasks": len(delegated),
                    "manager_tasks": manager_passes,
                },
            )

    # ==================== Manager passes ====================

    def _coordination_task(
        self,
        tasks: list[Task],
        inputs: Optional[dict[str, Any]],
    ) -> Task:
        lines = ["You are the manager coordinating the following tasks:", ""]
        for index, task in enumerate(tasks, start=1):
            lines.append(f"{index}. [{task.id}] {task.description}")
            if task.expected_output:
                lines.append(f"   Expected Output: {task.expected_output}")

        lines.append("")
        lines.append("Available worker agents:")
        lines.extend(f"- {worker.role}: {worker.goal}" for worker in self.workers)
        lines.append("")
        lines.append(
            "Create a task delegation plan. For each task, specify which agent "
            "should handle it and any specific instructions."
        )
        if inputs:
            lines.append(f"Input context: {inputs}")

        return Task(
            id=f"coordination-{uuid.uuid4().hex[:8]}",
            description="\n".join(lines),
            expected_output="A delegation plan mapping tasks to agents with specific instructions",
            agent=self.manager_agent,
        )

    def _synthesis_task(self, delegated: list[TaskOutput]) -> Task:
        lines = [
            "As the manager, review all completed task results and provide a final "
            "coordinated output.",
            "Base the output only on the task results below; do not introduce new information.",
            "",
        ]
        for index, output in enumerate(delegated, start=1):
            raw = output.raw_output or "No output"
            if len(raw) > SYNTHESIS_OUTPUT_LIMIT:
                raw = raw[:SYNTHESIS_OUTPUT_LIMIT] + "...[truncated]"
            lines.append(f"=== TASK {index} ===")
            lines.append(f"Description: {output.description}")
            lines.append(f"Agent: {output.agent_id}")
            lines.append("Result:")
            lines.append(raw)
            lines.append("")

        return Task(
            id=f"synthesis-{uuid.uuid4().hex[:8]}",
            description="\n".join(lines),
            expected_output="A comprehensive final output that synthesizes all task results accurately",
            agent=self.manager_agent,
        )
