"""Template resolution for task text."""

from agent_swarm.template.resolver import TemplateResolver, TemplateValidationError

__all__ = ["TemplateResolver", "TemplateValidationError"]
