"""Execution strategies."""

from typing import Optional, Sequence

from agent_swarm.agents.agent import Agent
from agent_swarm.config import ObservabilitySettings
from agent_swarm.core.exceptions import ConfigurationError
from agent_swarm.core.models import ProcessType
from agent_swarm.events.bus import EventBus
from agent_swarm.memory.base import Memory
from agent_swarm.observability.decision import DecisionTracer
from agent_swarm.process.base import Process
from agent_swarm.process.hierarchical import HierarchicalProcess
from agent_swarm.process.sequential import SequentialProcess


def create_process(
    process_type: ProcessType,
    agents: Sequence[Agent],
    manager_agent: Optional[Agent] = None,
    event_bus: Optional[EventBus] = None,
    decision_tracer: Optional[DecisionTracer] = None,
    settings: Optional[ObservabilitySettings] = None,
    memory: Optional[Memory] = None,
) -> Process:
    """Build the process for a process type."""
    if process_type == ProcessType.SEQUENTIAL:
        return SequentialProcess(agents, event_bus, decision_tracer, settings, memory)
    if process_type == ProcessType.HIERARCHICAL:
        if manager_agent is None:
            raise ConfigurationError("Manager agent is required for hierarchical process")
        return HierarchicalProcess(agents, manager_agent, event_bus, decision_tracer, settings, memory)
    raise ConfigurationError(f"Unsupported process type: {process_type}")


__all__ = [
    "Process",
    "SequentialProcess",
    "HierarchicalProcess",
    "create_process",
]
