"""
Event storage for workflow replay.

Events are grouped by correlation id (one group per run). The store can be
attached to an EventBus, in which case it records every event published
while replay is enabled.
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Optional

from agent_swarm.config import ObservabilitySettings
from agent_swarm.core.state_machine import utc_now
from agent_swarm.events.bus import EventBus
from agent_swarm.events.models import SwarmEvent, SwarmEventType
from agent_swarm.replay.recording import WorkflowRecording

logger = logging.getLogger(__name__)


class EventStore(ABC):
    """Storage interface for run events."""

    @abstractmethod
    def store(self, event: SwarmEvent) -> None:
        """Store an event; events without a correlation id are ignored."""
        pass

    @abstractmethod
    def get_events(self, correlation_id: str) -> list[SwarmEvent]:
        """Get a run's events in timestamp order."""
        pass

    @abstractmethod
    def get_events_by_swarm(self, swarm_id: str) -> list[SwarmEvent]:
        pass

    @abstractmethod
    def get_events_by_agent(self, agent_id: str) -> list[SwarmEvent]:
        pass

    @abstractmethod
    def get_events_by_task(self, task_id: str) -> list[SwarmEvent]:
        pass

    @abstractmethod
    def get_events_in_range(self, start: datetime, end: datetime) -> list[SwarmEvent]:
        """Get events with ``start <= timestamp <= end``."""
        pass

    @abstractmethod
    def get_events_by_type(self, correlation_id: str, event_type: SwarmEventType) -> list[SwarmEvent]:
        pass

    @abstractmethod
    def get_all_correlation_ids(self) -> list[str]:
        pass

    @abstractmethod
    def get_event_count(self, correlation_id: str) -> int:
        pass

    @abstractmethod
    def delete_events(self, correlation_id: str) -> None:
        pass

    @abstractmethod
    def delete_events_older_than(self, cutoff: datetime) -> int:
        """Delete events older than ``cutoff``; returns how many were removed."""
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    def has_events(self, correlation_id: str) -> bool:
        return self.get_event_count(correlation_id) > 0

    def create_recording(
        self,
        correlation_id: str,
        configuration: Optional[dict[str, Any]] = None,
    ) -> Optional[WorkflowRecording]:
        """Build a recording of a run, or None if nothing was stored."""
        events = self.get_events(correlation_id)
        if not events:
            return None
        return WorkflowRecording.from_events(events, configuration=configuration)

    def attach(self, bus: EventBus) -> Callable[[], None]:
        """Record every event published on ``bus``; returns the unsubscribe callable."""
        return bus.subscribe(self.store)


class InMemoryEventStore(EventStore):
    """
    Thread-safe in-memory event store.

    When the total number of events exceeds ``max_events_in_memory``, whole
    runs are evicted, least recently started first.
    """

    def __init__(self, settings: Optional[ObservabilitySettings] = None):
        self.settings = settings or ObservabilitySettings()
        self._lock = threading.RLock()
        # Insertion order doubles as run age
        self._events: dict[str, list[SwarmEvent]] = {}
        self._total = 0

    @property
    def enabled(self) -> bool:
        return self.settings.is_replay_active

    @property
    def max_events(self) -> int:
        return self.settings.replay.max_events_in_memory

    def store(self, event: SwarmEvent) -> None:
        if not self.enabled or event.correlation_id is None:
            return

        with self._lock:
            self._events.setdefault(event.correlation_id, []).append(event)
            self._total += 1
            self._evict_if_needed(keep=event.correlation_id)

    def _evict_if_needed(self, keep: str) -> None:
        while self._total > self.max_events:
            oldest = next((cid for cid in self._events if cid != keep), None)
            if oldest is None:
                return
            removed = self._events.pop(oldest)
            self._total -= len(removed)
            logger.debug(f"Evicted {len(removed)} events of run {oldest}")

    # ==================== Queries ====================

    def _select(self, predicate: Callable[[SwarmEvent], bool]) -> list[SwarmEvent]:
        with self._lock:
            selected = [
                event
                for events in self._events.values()
                for event in events
                if predicate(event)
            ]
        return sorted(selected, key=lambda e: e.timestamp)

    def get_events(self, correlation_id: str) -> list[SwarmEvent]:
        with self._lock:
            events = list(self._events.get(correlation_id, []))
        return sorted(events, key=lambda e: e.timestamp)

    def get_events_by_swarm(self, swarm_id: str) -> list[SwarmEvent]:
        return self._select(lambda e: e.swarm_id == swarm_id)

    def get_events_by_agent(self, agent_id: str) -> list[SwarmEvent]:
        return self._select(lambda e: e.agent_id == agent_id)

    def get_events_by_task(self, task_id: str) -> list[SwarmEvent]:
        return self._select(lambda e: e.task_id == task_id)

    def get_events_in_range(self, start: datetime, end: datetime) -> list[SwarmEvent]:
        return self._select(lambda e: start <= e.timestamp <= end)

    def get_events_by_type(self, correlation_id: str, event_type: SwarmEventType) -> list[SwarmEvent]:
        return [e for e in self.get_events(correlation_id) if e.type == event_type]

    def get_all_correlation_ids(self) -> list[str]:
        with self._lock:
            return list(self._events)

    def get_event_count(self, correlation_id: str) -> int:
        with self._lock:
            return len(self._events.get(correlation_id, []))

    @property
    def total_event_count(self) -> int:
        with self._lock:
            return self._total

    # ==================== Maintenance ====================

    def delete_events(self, correlation_id: str) -> None:
        with self._lock:
            removed = self._events.pop(correlation_id, [])
            self._total -= len(removed)

    def delete_events_older_than(self, cutoff: datetime) -> int:
        removed = 0
        with self._lock:
            for correlation_id in list(self._events):
                events = self._events[correlation_id]
                kept = [e for e in events if e.timestamp >= cutoff]
                removed += len(events) - len(kept)
                if kept:
                    self._events[correlation_id] = kept
                else:
                    del self._events[correlation_id]
            self._total -= removed
        return removed

    def purge_expired(self) -> int:
        """Delete events older than the configured retention period."""
        cutoff = utc_now() - timedelta(days=self.settings.replay.retention_days)
        removed = self.delete_events_older_than(cutoff)
        if removed:
            logger.info(f"Purged {removed} events older than {cutoff.isoformat()}")
        return removed

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
            self._total = 0

    def export_recording(
        self,
        correlation_id: str,
        directory: Optional[str | Path] = None,
        configuration: Optional[dict[str, Any]] = None,
    ) -> Optional[Path]:
        """
        Save a run's recording as ``<correlation_id>.json``.

        Returns:
            The written path, or None if the run has no events
        """
        recording = self.create_recording(correlation_id, configuration)
        if recording is None:
            return None
        target = Path(directory or self.settings.replay.store_directory)
        path = recording.save_to_file(target / f"{correlation_id}.json")
        logger.info(f"Exported recording {correlation_id} to {path}")
        return path

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            runs = {cid: len(events) for cid, events in self._events.items()}
            total = self._total
        return {
            "total_events": total,
            "total_workflows": len(runs),
            "max_events": self.max_events,
            "events_per_workflow": runs,
        }
