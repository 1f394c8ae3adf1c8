"""Configuration management."""

from agent_swarm.config.settings import (
    DecisionSettings,
    Environment,
    ObservabilitySettings,
    ReplaySettings,
    Settings,
    get_settings,
)

__all__ = [
    "DecisionSettings",
    "Environment",
    "ObservabilitySettings",
    "ReplaySettings",
    "Settings",
    "get_settings",
]
