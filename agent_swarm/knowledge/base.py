"""
Knowledge sources for agents.

A knowledge base holds named text sources. Lookups are keyword based: a
source matches when it contains the query (case-insensitive), and sources
with more occurrences rank higher.
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


class KnowledgeSource(BaseModel):
    """A named text source with optional metadata."""

    model_config = ConfigDict(frozen=True)

    source_id: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    added_at: datetime = Field(default_factory=utc_now)


class Knowledge(ABC):
    """Interface for knowledge bases."""

    @abstractmethod
    def query(self, query: Optional[str]) -> str:
        """Content of the most relevant source, or "" when nothing matches."""
        pass

    @abstractmethod
    def search(self, query: Optional[str], limit: int = 5) -> list[str]:
        """Contents of matching sources, most relevant first."""
        pass

    @abstractmethod
    def add_source(
        self,
        source_id: str,
        content: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        pass

    @abstractmethod
    def remove_source(self, source_id: Optional[str]) -> None:
        pass

    @abstractmethod
    def get_sources(self) -> list[str]:
        pass

    @abstractmethod
    def has_source(self, source_id: Optional[str]) -> bool:
        pass


def count_matches(text: str, needle: str) -> int:
    """Non-overlapping occurrences of ``needle`` in ``text``."""
    return text.count(needle) if needle else 0


class InMemoryKnowledge(Knowledge):
    """Thread-safe in-process knowledge base."""

    def __init__(self, event_bus: Optional[EventBus] = None):
        self.event_bus = event_bus
        self._lock = threading.RLock()
        self._sources: dict[str, KnowledgeSource] = {}

    def _ranked(self, query: Optional[str]) -> list[KnowledgeSource]:
        if not query or not query.strip():
            return []

        needle = query.lower()
        with self._lock:
            sources = list(self._sources.values())
        scored = [(count_matches(s.content.lower(), needle), s) for s in sources]
        # Stable sort keeps insertion order among equal scores
        ranked = sorted((pair for pair in scored if pair[0] > 0), key=lambda pair: -pair[0])
        return [source for _, source in ranked]

    def query(self, query: Optional[str]) -> str:
        ranked = self._ranked(query)
        result = ranked[0].content if ranked else ""

        if self.event_bus is not None and query and query.strip():
            self.event_bus.emit(
                SwarmEventType.KNOWLEDGE_QUERIED,
                f"Knowledge queried: {'match' if ranked else 'no match'}",
                attributes={
                    "source_id": ranked[0].source_id if ranked else None,
                    "match_count": len(ranked),
                },
            )
        return result

    def search(self, query: Optional[str], limit: int = 5) -> list[str]:
        return [source.content for source in self._ranked(query)[:limit]]

    def add_source(
        self,
        source_id: str,
        content: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Add or replace a source.

        Raises:
            ValueError: If the id is blank or the content is None
        """
        if not source_id or not source_id.strip():
            raise ValueError("Source ID cannot be empty or blank")
        if content is None:
            raise ValueError("Content cannot be None")

        with self._lock:
            self._sources[source_id] = KnowledgeSource(
                source_id=source_id,
                content=content,
                metadata=dict(metadata or {}),
            )
        logger.debug(f"Added knowledge source {source_id}")

    def remove_source(self, source_id: Optional[str]) -> None:
        if source_id is None:
            return
        with self._lock:
            self._sources.pop(source_id, None)

    def get_sources(self) -> list[str]:
        with self._lock:
            return list(self._sources)

    def has_source(self, source_id: Optional[str]) -> bool:
        if source_id is None:
            return False
        with self._lock:
            return source_id in self._sources

    def get_source_content(self, source_id: str) -> Optional[str]:
        with self._lock:
            source = self._sources.get(source_id)
        return source.content if source else None

    def get_source_metadata(self, source_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            source = self._sources.get(source_id)
        return dict(source.metadata) if source else None

    def clear(self) -> None:
        with self._lock:
            self._sources.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sources)
