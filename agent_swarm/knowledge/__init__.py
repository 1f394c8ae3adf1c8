"""Knowledge bases consulted when building agent prompts."""

from agent_swarm.knowledge.base import InMemoryKnowledge, Knowledge, KnowledgeSource

__all__ = ["Knowledge", "InMemoryKnowledge", "KnowledgeSource"]
