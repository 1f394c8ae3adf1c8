"""
Integration tests for sequential execution.

Scenario coverage:
- A: dependency ordering and context passing
- B: gating conditions
- C: fail-fast with partial output
- D: a last async task on a worker thread
- E: configuration errors before any task runs
"""

import pytest

from agent_swarm.core.exceptions import ConfigurationError, ProcessExecutionError, TaskGraphError
from agent_swarm.core.state_machine import TaskState
from agent_swarm.core.task import SKIPPED_OUTPUT, Task
from agent_swarm.events import SwarmEventType
from agent_swarm.observability import TraceContext
from agent_swarm.process import SequentialProcess


def types_of(events) -> list[str]:
    return [e.type.value for e in events]


@pytest.fixture
def researcher(make_agent):
    return make_agent(role="Researcher")


@pytest.fixture
def writer(make_agent):
    return make_agent(role="Writer", goal="Write clear prose", backstory="Journalist")


@pytest.fixture
def process(researcher, writer, event_bus, decision_tracer, settings):
    return SequentialProcess([researcher, writer], event_bus, decision_tracer, settings)


class TestSequentialOrdering:
    """Scenario A: tasks run in dependency order and share context."""

    def test_runs_in_dependency_order(self, process, researcher, writer, executor):
        """Test tasks run after their dependencies regardless of submission order."""
        tasks = [
            Task(id="edit", description="Edit", agent=writer, dependencies=["draft"]),
            Task(id="draft", description="Draft", agent=writer, dependencies=["research"]),
            Task(id="research", description="Research", agent=researcher),
        ]

        output = process.execute(tasks)

        assert executor.task_ids == ["research", "draft", "edit"]
        assert output.final_output == "Writer finished edit"
        assert output.raw_output == output.final_output
        assert output.successful
        assert [o.task_id for o in output.task_outputs] == ["research", "draft", "edit"]
        assert all(t.status == TaskState.COMPLETED for t in tasks)

    def test_submission_order_breaks_ties(self, process, researcher, executor):
        """Test simultaneously ready tasks keep their submitted order."""
        tasks = [
            Task(id="C", description="c", agent=researcher, dependencies=["A"]),
            Task(id="B", description="b", agent=researcher, dependencies=["A"]),
            Task(id="A", description="a", agent=researcher),
        ]

        process.execute(tasks)

        assert executor.task_ids == ["A", "C", "B"]

    def test_context_passing(self, process, researcher, writer, executor):
        """Test context is all prior outputs unless dependencies narrow it."""
        tasks = [
            Task(id="a", description="a", agent=researcher),
            Task(id="b", description="b", agent=researcher),
            Task(id="c", description="c", agent=writer, dependencies=["a"]),
        ]

        process.execute(tasks)

        contexts = {task_id: context for _, task_id, context in executor.calls}
        assert contexts == {"a": [], "b": ["a"], "c": ["a"]}
        assert "Context from previous tasks:\n- Researcher finished a" in executor.prompts[2]

    def test_default_agent_from_pool(self, process, researcher, executor):
        """Test tasks without an agent get the first pool agent."""
        task = Task(id="t1", description="Summarize")

        process.execute([task])

        assert task.agent is researcher
        assert executor.calls[0][0] == "Researcher"

    def test_usage_metrics(self, process, researcher):
        """Test token and task counts are aggregated."""
        tasks = [
            Task(id="a", description="a", agent=researcher),
            Task(id="b", description="b", agent=researcher),
        ]

        metrics = process.execute(tasks).usage_metrics

        assert metrics["total_tasks"] == 2
        assert metrics["completed_tasks"] == 2
        assert metrics["skipped_tasks"] == 0
        assert metrics["failed_tasks"] == 0
        assert metrics["total_prompt_tokens"] == 20
        assert metrics["total_completion_tokens"] == 10
        assert metrics["total_tokens"] == 30

    def test_event_sequence(self, process, researcher, collected_events):
        """Test lifecycle events are emitted in order."""
        tasks = [
            Task(id="a", description="a", agent=researcher),
            Task(id="b", description="b", agent=researcher),
        ]

        process.execute(tasks)

        assert types_of(collected_events) == [
            "PROCESS_STARTED",
            "TASK_STARTED",
            "TASK_COMPLETED",
            "TASK_STARTED",
            "TASK_COMPLETED",
            "PROCESS_COMPLETED",
        ]
        completed = collected_events[2]
        assert completed.task_id == "a"
        assert completed.agent_id == researcher.id
        assert completed.agent_role == "Researcher"
        assert completed.prompt_tokens == 10
        assert completed.status == "COMPLETED"

    def test_events_share_the_run(self, process, researcher, collected_events):
        """Test every event of a run carries the run's ids."""
        with TraceContext.span(root=True, swarm_id="swarm-1") as run:
            process.execute([Task(id="a", description="a", agent=researcher)])

        assert {e.correlation_id for e in collected_events} == {run.correlation_id}
        assert {e.swarm_id for e in collected_events} == {"swarm-1"}
        process_started, task_started = collected_events[0], collected_events[1]
        assert process_started.parent_span_id == run.span_id
        assert task_started.parent_span_id == process_started.span_id

    def test_decisions_recorded(self, process, researcher, writer, decision_tracer):
        """Test each completed task becomes a decision node."""
        tasks = [
            Task(id="a", description="Research", agent=researcher),
            Task(id="b", description="Write", agent=writer),
        ]

        with TraceContext.span(root=True) as run:
            decision_tracer.start_trace(run.correlation_id)
            process.execute(tasks)

        tree = decision_tracer.get_decision_tree(run.correlation_id)
        nodes = tree.get_all_nodes()
        assert [n.task_id for n in nodes] == ["a", "b"]
        assert nodes[1].agent_role == "Writer"
        assert nodes[1].input_context == "Researcher finished a"
        assert nodes[1].decision == "Writer finished b"
        assert "You are Writer." in nodes[1].prompt

    def test_context_restored_after_run(self, process, researcher):
        """Test the caller's context is untouched."""
        process.execute([Task(id="a", description="a", agent=researcher)])

        assert TraceContext.current_or_none() is None


class TestSequentialConditions:
    """Scenario B: gating conditions."""

    def test_false_condition_skips(self, process, researcher, executor, collected_events):
        """Test a false condition skips the task and never calls its agent."""
        tasks = [
            Task(id="a", description="a", agent=researcher),
            Task(id="b", description="b", agent=researcher, condition=lambda text: "approved" in text),
        ]

        output = process.execute(tasks)

        assert executor.task_ids == ["a"]
        assert tasks[1].status == TaskState.SKIPPED
        assert output.final_output == SKIPPED_OUTPUT
        assert output.task_outputs[1].skipped
        assert output.usage_metrics["skipped_tasks"] == 1
        assert output.usage_metrics["completed_tasks"] == 1
        assert "TASK_SKIPPED" in types_of(collected_events)

    def test_true_condition_runs(self, process, researcher, executor):
        """Test a true condition lets the task run."""
        tasks = [
            Task(id="a", description="a", agent=researcher),
            Task(id="b", description="b", agent=researcher, condition=lambda text: "finished a" in text),
        ]

        process.execute(tasks)

        assert executor.task_ids == ["a", "b"]

    def test_skip_is_not_a_decision(self, process, researcher, decision_tracer):
        """Test skipped tasks record no decision."""
        tasks = [Task(id="a", description="a", agent=researcher, condition=lambda text: False)]

        with TraceContext.span(root=True) as run:
            decision_tracer.start_trace(run.correlation_id)
            process.execute(tasks)

        assert len(decision_tracer.get_decision_tree(run.correlation_id)) == 0


class TestSequentialFailures:
    """Scenario C: fail-fast."""

    def test_failure_stops_run(self, process, researcher, executor, collected_events):
        """Test a failing task aborts the run with partial output."""
        executor.fail_on = {"b"}
        tasks = [
            Task(id="a", description="a", agent=researcher),
            Task(id="b", description="b", agent=researcher),
            Task(id="c", description="c", agent=researcher),
        ]

        with pytest.raises(ProcessExecutionError) as exc_info:
            process.execute(tasks)

        error = exc_info.value
        assert error.stage == "b"
        assert error.task_id == "b"
        assert "Failed to execute task: b" in str(error)
        assert [o.task_id for o in error.partial_output.task_outputs] == ["a"]
        assert not error.partial_output.successful
        assert error.partial_output.usage_metrics["failed_stage"] == "b"
        assert error.partial_output.usage_metrics["failed_tasks"] == 1
        assert tasks[1].status == TaskState.FAILED
        assert tasks[2].status == TaskState.PENDING
        assert executor.task_ids == ["a", "b"]
        assert types_of(collected_events)[-2:] == ["TASK_FAILED", "PROCESS_FAILED"]
        assert collected_events[-2].error_type == "ExecutionError"

    def test_tasks_run_once(self, process, researcher):
        """Test a process cannot re-run finished tasks."""
        tasks = [Task(id="a", description="a", agent=researcher)]
        process.execute(tasks)

        with pytest.raises(ProcessExecutionError) as exc_info:
            process.execute(tasks)

        assert "already been executed" in str(exc_info.value)


class TestSequentialAsync:
    """Scenario D: a last async task."""

    def test_last_async_task_runs_on_worker(self, process, researcher, executor, collected_events):
        """Test the last async task runs on another thread inside the run's span tree."""
        tasks = [
            Task(id="a", description="a", agent=researcher),
            Task(id="b", description="b", agent=researcher, async_execution=True),
        ]

        with TraceContext.span(root=True, swarm_id="swarm-1") as run:
            output = process.execute(tasks)

        assert output.final_output == "Researcher finished b"
        assert not executor.threads[0].startswith("swarm-task")
        assert executor.threads[1].startswith("swarm-task")
        worker_context = executor.contexts[1]
        assert worker_context.correlation_id == run.correlation_id
        assert worker_context.task_id == "b"
        assert worker_context.swarm_id == "swarm-1"
        process_started = collected_events[0]
        async_started = [e for e in collected_events if e.type == SwarmEventType.TASK_STARTED][1]
        assert async_started.parent_span_id == process_started.span_id

    def test_non_last_async_task_runs_inline(self, process, researcher, executor):
        """Test an async task that is not last runs on the calling thread."""
        tasks = [
            Task(id="a", description="a", agent=researcher, async_execution=True),
            Task(id="b", description="b", agent=researcher),
        ]

        process.execute(tasks)

        assert not executor.threads[0].startswith("swarm-task")

    def test_async_failure(self, process, researcher, executor):
        """Test a failing async task fails the run."""
        executor.fail_on = {"b"}
        tasks = [
            Task(id="a", description="a", agent=researcher),
            Task(id="b", description="b", agent=researcher, async_execution=True),
        ]

        with pytest.raises(ProcessExecutionError) as exc_info:
            process.execute(tasks)

        assert exc_info.value.stage == "b"


class TestSequentialValidation:
    """Scenario E: configuration errors."""

    def test_empty_tasks(self, process):
        """Test an empty task set is rejected."""
        with pytest.raises(ConfigurationError, match="cannot be empty"):
            process.execute([])

    def test_missing_dependency(self, process, researcher, executor, collected_events):
        """Test an unknown dependency is rejected before any task runs."""
        tasks = [Task(id="b", description="b", agent=researcher, dependencies=["x"])]

        with pytest.raises(TaskGraphError) as exc_info:
            process.execute(tasks)

        assert "depends on non-existent task" in str(exc_info.value)
        assert executor.calls == []
        assert types_of(collected_events) == ["PROCESS_STARTED", "PROCESS_FAILED"]

    def test_cycle_runs_nothing(self, process, researcher, executor):
        """Test a cyclic task set executes nothing."""
        tasks = [
            Task(id="a", description="a", agent=researcher, dependencies=["b"]),
            Task(id="b", description="b", agent=researcher, dependencies=["a"]),
        ]

        with pytest.raises(TaskGraphError, match="Circular dependency"):
            process.execute(tasks)

        assert executor.calls == []

    def test_no_agent_and_empty_pool(self, event_bus, settings, executor):
        """Test a task with no agent needs a pool to fall back on."""
        process = SequentialProcess([], event_bus, settings=settings)

        with pytest.raises(ConfigurationError, match="agent is required"):
            process.execute([Task(id="t1", description="x")])

        assert executor.calls == []

    def test_without_event_bus(self, researcher, settings):
        """Test a process runs without any observers."""
        process = SequentialProcess([researcher], settings=settings)

        output = process.execute([Task(id="a", description="a", agent=researcher)])

        assert output.successful
