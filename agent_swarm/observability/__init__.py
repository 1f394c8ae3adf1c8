"""Trace context, structured logging and decision tracing."""

from agent_swarm.observability.context import TraceContext
from agent_swarm.observability.decision import (
    DecisionNode,
    DecisionTracer,
    DecisionTree,
    DecisionTreeSummary,
)
from agent_swarm.observability.structured_logging import (
    StructuredLogger,
    TraceContextFilter,
    configure_logging,
)

__all__ = [
    "TraceContext",
    "DecisionNode",
    "DecisionTracer",
    "DecisionTree",
    "DecisionTreeSummary",
    "StructuredLogger",
    "TraceContextFilter",
    "configure_logging",
]
