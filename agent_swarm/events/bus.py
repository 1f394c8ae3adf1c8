"""
Typed event bus.

Processes publish lifecycle events here; recorders, metrics collectors and
tests subscribe with a callback, optionally restricted to some event types.
"""

import logging
import threading
from typing import Any, Callable, Iterable, Optional

from agent_swarm.events.models import SwarmEvent, SwarmEventType

logger = logging.getLogger(__name__)

EventListener = Callable[[SwarmEvent], None]


class EventBus:
    """
    Callback registry for swarm events.

    Listeners run synchronously on the publishing thread, in subscription
    order. A listener that raises is logged and does not stop delivery to
    the others.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: list[tuple[EventListener, Optional[frozenset[SwarmEventType]]]] = []

    def subscribe(
        self,
        listener: EventListener,
        event_types: Optional[Iterable[SwarmEventType]] = None,
    ) -> Callable[[], None]:
        """
        Register a listener.

        Args:
            listener: Called with each matching event
            event_types: Only deliver these types (all types when None)

        Returns:
            A callable that removes the listener
        """
        types = frozenset(event_types) if event_types is not None else None
        with self._lock:
            self._listeners.append((listener, types))
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        with self._lock:
            self._listeners = [
                (registered, types)
                for registered, types in self._listeners
                if registered != listener
            ]

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def publish(self, event: SwarmEvent) -> None:
        """Deliver an event to every matching listener."""
        with self._lock:
            listeners = list(self._listeners)

        for listener, types in listeners:
            if types is not None and event.type not in types:
                continue
            try:
                listener(event)
            except Exception as e:
                logger.error(
                    f"Event listener {listener!r} failed for {event.type.value}: {e}",
                    exc_info=True,
                )

    def emit(
        self,
        event_type: SwarmEventType,
        message: str,
        **fields: Any,
    ) -> SwarmEvent:
        """Build an event from the current trace context and publish it."""
        event = SwarmEvent.from_context(event_type, message, **fields)
        self.publish(event)
        return event
