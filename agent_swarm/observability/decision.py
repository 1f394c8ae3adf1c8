"""
Decision tracing.

Every agent step in a traced run is recorded as a DecisionNode. Nodes of one
run (one correlation id) form a DecisionTree, linked through span ids, from
which the tracer renders plain-text explanations without re-invoking any
agent.
"""

import logging
import threading
import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from agent_swarm.config import ObservabilitySettings
from agent_swarm.core.state_machine import utc_now
from agent_swarm.observability.context import TraceContext

logger = logging.getLogger(__name__)


def _truncate(text: Optional[str], max_length: int) -> Optional[str]:
    if text is None or len(text) <= max_length:
        return text
    # No room for the ellipsis
    if max_length <= 3:
        return text[:max_length]
    return text[: max_length - 3] + "..."


class DecisionNode(BaseModel):
    """Immutable record of one agent decision point."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    correlation_id: Optional[str] = None
    span_id: Optional[str] = None
    parent_span_id: Optional[str] = None

    # Agent
    agent_id: Optional[str] = None
    agent_role: Optional[str] = None
    agent_goal: Optional[str] = None
    agent_backstory: Optional[str] = None

    # Task
    task_id: Optional[str] = None
    task_description: Optional[str] = None
    expected_output: Optional[str] = None
    input_context: Optional[str] = None

    # Artifacts (absent when capture is disabled)
    prompt: Optional[str] = None
    raw_response: Optional[str] = None

    decision: Optional[str] = None
    reasoning: Optional[str] = None
    tools_used: tuple[str, ...] = ()

    timestamp: datetime = Field(default_factory=utc_now)
    latency_ms: int = Field(default=0, ge=0)
    analysis_metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def create(cls, **fields: Any) -> "DecisionNode":
        """Build a node whose ids default to the current trace context."""
        context = TraceContext.current_or_none()
        if context is not None:
            fields.setdefault("correlation_id", context.correlation_id)
            fields.setdefault("span_id", context.span_id)
            fields.setdefault("parent_span_id", context.parent_span_id)
            fields.setdefault("agent_id", context.agent_id)
            fields.setdefault("task_id", context.task_id)
        return cls(**fields)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class DecisionTreeSummary(BaseModel):
    """Aggregate statistics over a decision tree."""

    model_config = ConfigDict(frozen=True)

    correlation_id: str
    swarm_id: Optional[str] = None
    total_decisions: int = 0
    unique_agents: int = 0
    unique_tasks: int = 0
    total_latency_ms: int = 0
    avg_latency_ms: float = 0.0
    total_duration_ms: int = 0
    tools_used: list[str] = Field(default_factory=list)


class DecisionTree:
    """
    All decision nodes of one run.

    Nodes may be added from several threads. Each node is indexed under the
    same lock it is appended with, so readers never see it half-indexed.
    """

    def __init__(self, correlation_id: str, swarm_id: Optional[str] = None):
        self.correlation_id = correlation_id
        self.swarm_id = swarm_id
        self.start_time = utc_now()
        self.end_time: Optional[datetime] = None

        self._lock = threading.RLock()
        self._nodes: list[DecisionNode] = []
        self._nodes_by_id: dict[str, DecisionNode] = {}
        self._nodes_by_agent: dict[str, list[DecisionNode]] = {}
        self._nodes_by_task: dict[str, list[DecisionNode]] = {}

    def add_node(self, node: DecisionNode) -> None:
        with self._lock:
            self._nodes.append(node)
            self._nodes_by_id[node.id] = node
            if node.agent_id:
                self._nodes_by_agent.setdefault(node.agent_id, []).append(node)
            if node.task_id:
                self._nodes_by_task.setdefault(node.task_id, []).append(node)

    def complete(self) -> None:
        """Mark the run as finished, fixing the tree's duration."""
        with self._lock:
            self.end_time = utc_now()

    @property
    def is_complete(self) -> bool:
        return self.end_time is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._nodes)

    # ==================== Queries ====================

    def get_all_nodes(self) -> list[DecisionNode]:
        with self._lock:
            return list(self._nodes)

    def get_node_by_id(self, node_id: str) -> Optional[DecisionNode]:
        with self._lock:
            return self._nodes_by_id.get(node_id)

    def get_nodes_for_agent(self, agent_id: str) -> list[DecisionNode]:
        with self._lock:
            return list(self._nodes_by_agent.get(agent_id, []))

    def get_nodes_for_task(self, task_id: str) -> list[DecisionNode]:
        with self._lock:
            return list(self._nodes_by_task.get(task_id, []))

    def get_child_nodes(self, parent_span_id: str) -> list[DecisionNode]:
        """Nodes recorded in spans created by ``parent_span_id``."""
        with self._lock:
            return [n for n in self._nodes if n.parent_span_id == parent_span_id]

    def get_root_nodes(self) -> list[DecisionNode]:
        with self._lock:
            return [n for n in self._nodes if n.parent_span_id is None]

    def get_agent_ids(self) -> set[str]:
        with self._lock:
            return set(self._nodes_by_agent)

    def get_task_ids(self) -> set[str]:
        with self._lock:
            return set(self._nodes_by_task)

    def summary(self) -> DecisionTreeSummary:
        with self._lock:
            nodes = list(self._nodes)
            agent_count = len(self._nodes_by_agent)
            task_count = len(self._nodes_by_task)
            end_time = self.end_time

        total_latency = sum(n.latency_ms for n in nodes)
        tools = sorted({tool for n in nodes for tool in n.tools_used})
        duration = (
            int((end_time - self.start_time).total_seconds() * 1000)
            if end_time is not None
            else 0
        )

        return DecisionTreeSummary(
            correlation_id=self.correlation_id,
            swarm_id=self.swarm_id,
            total_decisions=len(nodes),
            unique_agents=agent_count,
            unique_tasks=task_count,
            total_latency_ms=total_latency,
            avg_latency_ms=total_latency / len(nodes) if nodes else 0.0,
            total_duration_ms=duration,
            tools_used=tools,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "correlation_id": self.correlation_id,
            "swarm_id": self.swarm_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "nodes": [n.to_dict() for n in self.get_all_nodes()],
            "summary": self.summary().model_dump(),
        }


class DecisionTracer:
    """
    Keeps one DecisionTree per run and explains its decisions.

    Trees stay in memory until ``cleanup`` is called. Every operation is a
    no-op while decision tracing is disabled.
    """

    def __init__(self, settings: Optional[ObservabilitySettings] = None):
        self.settings = settings or ObservabilitySettings()
        self._lock = threading.Lock()
        self._trees: dict[str, DecisionTree] = {}

    @property
    def enabled(self) -> bool:
        return self.settings.is_decision_tracing_active

    # ==================== Lifecycle ====================

    def start_trace(self, correlation_id: str, swarm_id: Optional[str] = None) -> Optional[DecisionTree]:
        """Allocate an empty tree for a run."""
        if not self.enabled:
            return None
        tree = DecisionTree(correlation_id, swarm_id)
        with self._lock:
            self._trees[correlation_id] = tree
        logger.debug(f"Started decision trace {correlation_id}")
        return tree

    def complete_trace(self, correlation_id: str) -> None:
        if not self.enabled:
            return
        tree = self.get_decision_tree(correlation_id)
        if tree is not None:
            tree.complete()

    def record_decision(self, node: Optional[DecisionNode]) -> bool:
        """
        Add a node to the tree of its run.

        The node's correlation id is used, falling back to the current trace
        context.

        Returns:
            True if the node was recorded
        """
        if not self.enabled or node is None:
            return False

        correlation_id = node.correlation_id
        if correlation_id is None:
            context = TraceContext.current_or_none()
            correlation_id = context.correlation_id if context else None
        if correlation_id is None:
            logger.debug(f"Dropping decision {node.id}: no correlation id")
            return False

        tree = self.get_decision_tree(correlation_id)
        if tree is None:
            logger.debug(f"Dropping decision {node.id}: no trace started for {correlation_id}")
            return False

        tree.add_node(node)
        return True

    def create_decision(self, **fields: Any) -> DecisionNode:
        """Build a node pre-filled from the current trace context."""
        return DecisionNode.create(**fields)

    def capture_prompt(self, prompt: Optional[str]) -> Optional[str]:
        """Prompt text as it may be stored, per the capture settings."""
        decision = self.settings.decision
        if not decision.capture_prompts:
            return None
        return _truncate(prompt, decision.max_prompt_length)

    def capture_response(self, response: Optional[str]) -> Optional[str]:
        decision = self.settings.decision
        if not decision.capture_responses:
            return None
        return _truncate(response, decision.max_response_length)

    # ==================== Lookup ====================

    def get_decision_tree(self, correlation_id: str) -> Optional[DecisionTree]:
        with self._lock:
            return self._trees.get(correlation_id)

    def get_decision_node(self, correlation_id: str, node_id: str) -> Optional[DecisionNode]:
        tree = self.get_decision_tree(correlation_id)
        if tree is None:
            return None
        return tree.get_node_by_id(node_id)

    def cleanup(self, correlation_id: str) -> None:
        """Remove a run's tree."""
        with self._lock:
            self._trees.pop(correlation_id, None)

    def clear_all(self) -> None:
        with self._lock:
            self._trees.clear()

    @property
    def active_trace_count(self) -> int:
        with self._lock:
            return len(self._trees)

    # ==================== Explanations ====================

    def explain_decision(self, correlation_id: str, node_id: str) -> str:
        """Render a plain-text explanation of one decision."""
        node = self.get_decision_node(correlation_id, node_id)
        if node is None:
            return f"Decision not found: {node_id}"

        lines = ["=== Decision Explanation ===", ""]

        lines.append("AGENT:")
        lines.append(f"  Role: {node.agent_role}")
        if node.agent_goal is not None:
            lines.append(f"  Goal: {_truncate(node.agent_goal, 200)}")
        if node.agent_backstory is not None:
            lines.append(f"  Backstory: {_truncate(node.agent_backstory, 200)}")
        lines.append("")

        lines.append("TASK:")
        lines.append(f"  ID: {node.task_id}")
        lines.append(f"  Description: {_truncate(node.task_description, 300)}")
        if node.expected_output is not None:
            lines.append(f"  Expected Output: {_truncate(node.expected_output, 200)}")
        lines.append("")

        if node.input_context is not None:
            lines.append("INPUT CONTEXT:")
            lines.append(f"  {_truncate(node.input_context, 500)}")
            lines.append("")

        lines.append("DECISION:")
        if node.decision is not None:
            lines.append(f"  {_truncate(node.decision, 300)}")
            lines.append("")

        lines.append("WHY THIS DECISION?")
        lines.extend(self._analyze_decision(node))
        lines.append("")

        if node.tools_used:
            lines.append("TOOLS USED:")
            lines.extend(f"  - {tool}" for tool in node.tools_used)
            lines.append("")

        lines.append("TIMING:")
        lines.append(f"  Latency: {node.latency_ms}ms")
        lines.append(f"  Timestamp: {node.timestamp.isoformat()}")

        return "\n".join(lines) + "\n"

    def _analyze_decision(self, node: DecisionNode) -> list[str]:
        analysis = []

        if node.agent_role is not None and node.decision is not None:
            analysis.append(
                f"  - The agent's role as '{node.agent_role}' influenced the approach taken."
            )
        if node.agent_goal is not None:
            analysis.append(
                f"  - The decision aligns with the agent's goal: {_truncate(node.agent_goal, 100)}"
            )
        if node.input_context:
            analysis.append("  - Prior context from previous tasks informed this decision.")
        if node.tools_used:
            analysis.append(
                f"  - The agent used {len(node.tools_used)} tool(s) to gather information: "
                f"{', '.join(node.tools_used)}"
            )
        if node.reasoning is not None:
            analysis.append(f"  - Agent's stated reasoning: {_truncate(node.reasoning, 200)}")

        if not analysis:
            analysis.append("  - Insufficient context to analyze decision.")
        return analysis

    def explain_workflow(self, correlation_id: str) -> str:
        """Render a summary and timeline of every decision in a run."""
        tree = self.get_decision_tree(correlation_id)
        if tree is None:
            return f"Workflow not found: {correlation_id}"

        summary = tree.summary()
        lines = ["=== Workflow Decision Trace ===", ""]

        lines.append("SUMMARY:")
        lines.append(f"  Correlation ID: {summary.correlation_id}")
        lines.append(f"  Swarm ID: {summary.swarm_id}")
        lines.append(f"  Total Decisions: {summary.total_decisions}")
        lines.append(f"  Unique Agents: {summary.unique_agents}")
        lines.append(f"  Unique Tasks: {summary.unique_tasks}")
        lines.append(f"  Total Duration: {summary.total_duration_ms}ms")
        lines.append(f"  Avg Decision Latency: {summary.avg_latency_ms:.1f}ms")
        if summary.tools_used:
            lines.append(f"  Tools Used: {', '.join(summary.tools_used)}")
        lines.append("")

        lines.append("DECISION TIMELINE:")
        for index, node in enumerate(tree.get_all_nodes(), start=1):
            headline = node.decision if node.decision is not None else node.task_description
            lines.append(
                f"  {index}. [{node.agent_role}] {_truncate(headline, 80)} ({node.latency_ms}ms)"
            )

        return "\n".join(lines) + "\n"
