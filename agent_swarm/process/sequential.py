"""
Sequential execution strategy.

Runs tasks one after another in dependency order, feeding each task the
outputs of the tasks before it.
"""

import logging
from typing import Any, Optional, Sequence

from agent_swarm.core.exceptions import ConfigurationError, ProcessExecutionError
from agent_swarm.core.graph import order_tasks
from agent_swarm.core.models import ProcessType, SwarmOutput, TaskOutput
from agent_swarm.core.state_machine import utc_now
from agent_swarm.core.task import Task
from agent_swarm.events.models import SwarmEventType
from agent_swarm.observability.context import TraceContext
from agent_swarm.process.base import Process

logger = logging.getLogger(__name__)


class SequentialProcess(Process):
    """
    Executes tasks in dependency order on the calling thread.

    A task marked ``async_execution`` that comes last in the order runs on a
    worker thread; the process waits for it before returning. Any failure
    stops the run.
    """

    process_type = ProcessType.SEQUENTIAL

    def validate_tasks(self, tasks: Sequence[Task]) -> None:
        """
        Check that the run can start.

        Raises:
            ConfigurationError: On an empty task set, a dependency on a task
                that was not submitted, or a task with no agent while the
                agent pool is empty
        """
        self._validate_graph(tasks)

        if not self.agents:
            for task in tasks:
                if task.agent is None:
                    raise ConfigurationError(
                        f"Task '{task.id}' has no agent and no agents are available: "
                        "agent is required",
                        task_id=task.id,
                    )

    def _assign_default_agents(self, tasks: Sequence[Task]) -> None:
        for task in tasks:
            if task.agent is None and self.agents:
                task.assign_agent(self.agents[0])

    def execute(
        self,
        tasks: Sequence[Task],
        inputs: Optional[dict[str, Any]] = None,
    ) -> SwarmOutput:
        """
        Run the tasks in order.

        Returns:
            SwarmOutput whose final output is the raw output of the last task

        Raises:
            ConfigurationError: If validation or ordering fails
            ProcessExecutionError: If a task fails; carries the outputs
                produced before the failure
        """
        start_time = utc_now()
        outputs: list[TaskOutput] = []

        with TraceContext.span(attributes={"process_type": self.process_type.value}) as span:
            swarm_id = self._run_id(span)
            logger.info(f"Starting sequential process {swarm_id} with {len(tasks)} tasks")
            self.observability.emit(
                SwarmEventType.PROCESS_STARTED,
                "Starting sequential process execution",
                attributes={"task_count": len(tasks)},
            )

            stage = "validation"
            try:
                self.validate_tasks(tasks)
                self._assign_default_agents(tasks)
                ordered = order_tasks(tasks)

                for index, task in enumerate(ordered):
                    stage = task.id
                    is_last = index == len(ordered) - 1
                    if task.async_execution and is_last:
                        output = self._run_task_in_worker(task, outputs)
                    else:
                        output = self._run_task(task, outputs)
                    outputs.append(output)

            except ConfigurationError as e:
                logger.error(f"Sequential process {swarm_id} misconfigured: {e}")
                self.observability.emit(
                    SwarmEventType.PROCESS_FAILED,
                    f"Sequential process configuration invalid: {e}",
                    error=e,
                    status="FAILED",
                )
                raise

            except Exception as e:
                logger.error(f"Sequential process {swarm_id} failed at task {stage}: {e}")
                self.observability.emit(
                    SwarmEventType.PROCESS_FAILED,
                    f"Sequential process failed at task {stage}",
                    error=e,
                    task_id=stage,
                    status="FAILED",
                    duration_ms=span.elapsed_ms,
                )
                partial = self._build_output(
                    swarm_id,
                    span,
                    outputs,
                    start_time,
                    final_output=outputs[-1].raw_output if outputs else None,
                    usage_metrics=self._usage_metrics(outputs, failed_stage=stage),
                    successful=False,
                )
                raise ProcessExecutionError(
                    f"Sequential process failed at task '{stage}': {e}",
                    stage=stage,
                    partial_output=partial,
                    task_id=stage,
                ) from e

            self.observability.emit(
                SwarmEventType.PROCESS_COMPLETED,
                "Sequential process completed",
                status="COMPLETED",
                duration_ms=span.elapsed_ms,
            )
            logger.info(f"Sequential process {swarm_id} completed {len(outputs)} tasks")

            return self._build_output(
                swarm_id,
                span,
                outputs,
                start_time,
                final_output=outputs[-1].raw_output,
                usage_metrics=self._usage_metrics(outputs),
            )

    def _usage_metrics(
        self,
        outputs: list[TaskOutput],
        failed_stage: Optional[str] = None,
    ) -> dict[str, Any]:
        metrics: dict[str, Any] = {
            "total_tasks": len(outputs) + (1 if failed_stage else 0),
            "completed_tasks": sum(1 for o in outputs if o.successful and not o.skipped),
            "skipped_tasks": sum(1 for o in outputs if o.skipped),
            "failed_tasks": 1 if failed_stage else 0,
        }
        if failed_stage:
            metrics["failed_stage"] = failed_stage
        return metrics
