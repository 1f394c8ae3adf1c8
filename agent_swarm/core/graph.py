"""
Task graph validation and ordering.

Implements cycle detection and dependency ordering using Kahn's algorithm.
"""

from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence, TYPE_CHECKING

from agent_swarm.core.exceptions import TaskGraphError

if TYPE_CHECKING:
    from agent_swarm.core.task import Task


@dataclass
class ValidationError:
    """Represents a single validation error."""

    code: str
    message: str
    task_id: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class ValidationResult:
    """Result of task graph validation."""

    is_valid: bool
    errors: list[ValidationError] = field(default_factory=list)

    # Populated on successful validation
    execution_order: list[str] = field(default_factory=list)

    def add_error(
        self,
        code: str,
        message: str,
        task_id: Optional[str] = None,
        **details: Any,
    ) -> None:
        """Add a validation error."""
        self.errors.append(ValidationError(code, message, task_id, details))
        self.is_valid = False

    def raise_for_errors(self) -> None:
        """Raise the first error as a TaskGraphError."""
        if self.is_valid:
            return
        error = self.errors[0]
        raise TaskGraphError(error.code, error.message, task_id=error.task_id, **error.details)


class TaskGraph:
    """
    The full set of tasks submitted for one run, with dependency edges.

    Ordering is stable: among tasks that become ready at the same time, the
    one submitted first runs first.
    """

    def __init__(self, tasks: Sequence["Task"]):
        self.tasks = list(tasks)
        self._adjacency_list: dict[str, list[str]] = defaultdict(list)
        self._in_degree: dict[str, int] = {}
        self._task_map: dict[str, "Task"] = {}

        self._build_graph()

    def _build_graph(self) -> None:
        """Build internal graph representation."""
        for task in self.tasks:
            self._task_map.setdefault(task.id, task)
            self._in_degree[task.id] = len(task.dependencies)

        # dep -> task (forward edge), in submission order
        for task in self.tasks:
            for dep in task.dependencies:
                self._adjacency_list[dep].append(task.id)

    def get_task(self, task_id: str) -> Optional["Task"]:
        return self._task_map.get(task_id)

    def get_dependents(self, task_id: str) -> list[str]:
        """IDs of the tasks that depend on ``task_id``."""
        return list(self._adjacency_list.get(task_id, []))

    def validate(self) -> ValidationResult:
        """
        Perform full validation of the graph.

        Returns:
            ValidationResult with errors and, when valid, the execution order
        """
        result = ValidationResult(is_valid=True)

        if not self.tasks:
            result.add_error(code="EMPTY_GRAPH", message="Tasks list cannot be empty")
            return result

        self._validate_unique_ids(result)
        self._validate_task_references(result)
        self._validate_no_self_loops(result)
        self._detect_cycles_and_compute_order(result)

        return result

    def order(self) -> list["Task"]:
        """
        Get the tasks in execution order.

        Raises:
            TaskGraphError: If the graph is empty, references a missing task
                or contains a circular dependency
        """
        result = self.validate()
        result.raise_for_errors()
        return [self._task_map[task_id] for task_id in result.execution_order]

    def _validate_unique_ids(self, result: ValidationResult) -> None:
        seen: set[str] = set()
        for task in self.tasks:
            if task.id in seen:
                result.add_error(
                    code="DUPLICATE_TASK",
                    message=f"Duplicate task id '{task.id}'",
                    task_id=task.id,
                )
            seen.add(task.id)

    def _validate_task_references(self, result: ValidationResult) -> None:
        """Validate that all dependency references point to submitted tasks."""
        for task in self.tasks:
            for dep in task.dependencies:
                if dep not in self._task_map:
                    result.add_error(
                        code="INVALID_DEPENDENCY",
                        message=f"Task '{task.id}' depends on non-existent task '{dep}'",
                        task_id=task.id,
                        dependency=dep,
                    )

    def _validate_no_self_loops(self, result: ValidationResult) -> None:
        """Check for self-referential dependencies."""
        for task in self.tasks:
            if task.id in task.dependencies:
                result.add_error(
                    code="CYCLE_DETECTED",
                    message=f"Task '{task.id}' has a circular dependency on itself",
                    task_id=task.id,
                    cycle_tasks=[task.id],
                )

    def _detect_cycles_and_compute_order(self, result: ValidationResult) -> None:
        """
        Detect cycles using Kahn's algorithm and compute the execution order.

        Kahn's Algorithm:
        1. Queue every task with no dependencies, in submission order
        2. Dequeue a task and append it to the order
        3. Decrement the in-degree of its dependents; queue those reaching 0
        4. If tasks remain unordered, they are part of (or behind) a cycle
        """
        # Skip if there are already errors
        if not result.is_valid:
            return

        in_degree = self._in_degree.copy()

        queue = deque([
            task.id for task in self.tasks
            if in_degree[task.id] == 0
        ])

        execution_order: list[str] = []

        while queue:
            task_id = queue.popleft()
            execution_order.append(task_id)

            for dependent in self._adjacency_list[task_id]:
                in_degree[dependent] -= 1
                # Reaches zero exactly once, so each task is queued once
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        if len(execution_order) != len(self._task_map):
            remaining = [t.id for t in self.tasks if t.id not in set(execution_order)]
            cycle_tasks = self._find_cycle_tasks(remaining)

            result.add_error(
                code="CYCLE_DETECTED",
                message=f"Circular dependency detected among tasks: {cycle_tasks}",
                task_id=cycle_tasks[0] if cycle_tasks else None,
                cycle_tasks=cycle_tasks,
            )
        else:
            result.execution_order = execution_order

    def _find_cycle_tasks(self, candidates: list[str]) -> list[str]:
        """Find tasks that are part of a cycle using DFS."""
        visited: set[str] = set()
        rec_stack: set[str] = set()
        cycle_path: list[str] = []

        def dfs(task_id: str, path: list[str]) -> bool:
            visited.add(task_id)
            rec_stack.add(task_id)
            path.append(task_id)

            for dependent in self._adjacency_list.get(task_id, []):
                if dependent not in visited:
                    if dfs(dependent, path):
                        return True
                elif dependent in rec_stack:
                    cycle_start = path.index(dependent)
                    cycle_path.extend(path[cycle_start:])
                    return True

            path.pop()
            rec_stack.remove(task_id)
            return False

        for task_id in candidates:
            if task_id not in visited:
                if dfs(task_id, []):
                    break

        return cycle_path if cycle_path else list(candidates)


def order_tasks(tasks: Sequence["Task"]) -> list["Task"]:
    """
    Order tasks so each one comes after its dependencies.

    Convenience function for the process engines.
    """
    return TaskGraph(tasks).order()
