"""Agents and the executor interface they delegate to."""

from agent_swarm.agents.agent import Agent
from agent_swarm.agents.executors import AgentExecutor, CallableExecutor, build_prompt

__all__ = [
    "Agent",
    "AgentExecutor",
    "CallableExecutor",
    "build_prompt",
]
