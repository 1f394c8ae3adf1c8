"""Tool capabilities available to agents."""

from agent_swarm.tools.base import BaseTool, FunctionTool

__all__ = ["BaseTool", "FunctionTool"]
