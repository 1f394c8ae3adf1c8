"""Lifecycle events and the event bus."""

from agent_swarm.events.bus import EventBus, EventListener
from agent_swarm.events.models import SwarmEvent, SwarmEventType

__all__ = [
    "EventBus",
    "EventListener",
    "SwarmEvent",
    "SwarmEventType",
]
