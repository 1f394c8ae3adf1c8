"""
Agent Swarm

A multi-agent task orchestrator with dependency-ordered execution,
manager-led delegation, causally-linked tracing, decision explanation
and replayable workflow recordings.
"""

__version__ = "1.0.0"
