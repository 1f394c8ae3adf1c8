"""
Agent memory.

Memories are short texts saved by agents (typically their task outputs) that
can be searched or listed most-recent-first. A memory store can publish
MEMORY_SAVED / MEMORY_SEARCHED events on an EventBus.
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from agent_swarm.core.state_machine import utc_now
from agent_swarm.events.bus import EventBus
from agent_swarm.events.models import SwarmEventType

logger = logging.getLogger(__name__)


class MemoryEntry(BaseModel):
    """One saved memory."""

    model_config = ConfigDict(frozen=True)

    agent_id: Optional[str] = None
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)


class Memory(ABC):
    """Storage interface for agent memories."""

    @abstractmethod
    def save(
        self,
        agent_id: Optional[str],
        content: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        """Save a memory; ``agent_id`` None means a swarm-wide memory."""
        pass

    @abstractmethod
    def search(self, query: str, limit: int = 5) -> list[str]:
        """Memories containing ``query`` (case-insensitive), newest first."""
        pass

    @abstractmethod
    def get_recent_memories(self, agent_id: Optional[str] = None, limit: int = 5) -> list[str]:
        """Newest memories of one agent, or of everyone when ``agent_id`` is None."""
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    @abstractmethod
    def clear_for_agent(self, agent_id: str) -> None:
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass

    @property
    def is_empty(self) -> bool:
        return len(self) == 0


class InMemoryMemory(Memory):
    """Thread-safe in-process memory store."""

    def __init__(self, event_bus: Optional[EventBus] = None):
        self.event_bus = event_bus
        self._lock = threading.RLock()
        self._entries: list[MemoryEntry] = []

    def save(
        self,
        agent_id: Optional[str],
        content: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        entry = MemoryEntry(agent_id=agent_id, content=content, metadata=dict(metadata or {}))
        with self._lock:
            self._entries.append(entry)

        logger.debug(f"Saved memory for agent {agent_id or '-'} ({len(content)} chars)")
        if self.event_bus is not None:
            self.event_bus.emit(
                SwarmEventType.MEMORY_SAVED,
                f"Memory saved for agent {agent_id or 'swarm'}",
                agent_id=agent_id,
                attributes={"length": len(content), **entry.metadata},
            )

    def search(self, query: str, limit: int = 5) -> list[str]:
        if not query or not query.strip():
            return []

        needle = query.lower()
        with self._lock:
            matches = [e for e in self._entries if needle in e.content.lower()]
        results = [e.content for e in self._newest_first(matches)[:limit]]

        if self.event_bus is not None:
            self.event_bus.emit(
                SwarmEventType.MEMORY_SEARCHED,
                f"Memory searched: {len(results)} result(s)",
                attributes={"query": query, "result_count": len(results)},
            )
        return results

    def get_recent_memories(self, agent_id: Optional[str] = None, limit: int = 5) -> list[str]:
        with self._lock:
            if agent_id is None:
                entries = list(self._entries)
            else:
                entries = [e for e in self._entries if e.agent_id == agent_id]
        return [e.content for e in self._newest_first(entries)[:limit]]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def clear_for_agent(self, agent_id: str) -> None:
        with self._lock:
            self._entries = [e for e in self._entries if e.agent_id != agent_id]

    def count_for_agent(self, agent_id: str) -> int:
        with self._lock:
            return sum(1 for e in self._entries if e.agent_id == agent_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @staticmethod
    def _newest_first(entries: list[MemoryEntry]) -> list[MemoryEntry]:
        # Entries are appended in time order; reversing keeps ties stable
        return list(reversed(entries))
