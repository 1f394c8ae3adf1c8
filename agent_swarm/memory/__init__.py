"""Agent memory stores."""

from agent_swarm.memory.base import InMemoryMemory, Memory, MemoryEntry

__all__ = ["Memory", "InMemoryMemory", "MemoryEntry"]
