"""
Pytest configuration and fixtures.
"""

import threading
from typing import Callable, Optional

import pytest

from agent_swarm.agents import Agent, AgentExecutor, build_prompt
from agent_swarm.config import DecisionSettings, ObservabilitySettings, ReplaySettings
from agent_swarm.core.models import TaskOutput
from agent_swarm.events import EventBus, SwarmEvent
from agent_swarm.observability import DecisionTracer, TraceContext
from agent_swarm.replay import InMemoryEventStore


class ScriptedExecutor(AgentExecutor):
    """
    Deterministic executor for tests.

    Answers with ``responses[task.id]`` when present, otherwise with
    "<role> finished <task id>". Tasks whose id starts with an entry of
    ``fail_on`` raise. Every call is recorded as (agent role, task id,
    context task ids). With a ``barrier``, every call waits on it first,
    which forces concurrent runs to overlap.
    """

    def __init__(
        self,
        responses: Optional[dict[str, str]] = None,
        fail_on: Optional[set[str]] = None,
        tools_used: Optional[list[str]] = None,
        reasoning: Optional[str] = None,
        prompt_tokens: int = 10,
        completion_tokens: int = 5,
        barrier: Optional[threading.Barrier] = None,
    ):
        self.responses = responses or {}
        self.fail_on = fail_on or set()
        self.tools_used = tools_used or []
        self.reasoning = reasoning
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.barrier = barrier
        self.calls: list[tuple[str, str, list[str]]] = []
        self.prompts: list[str] = []
        self.contexts: list[Optional[TraceContext]] = []
        self.threads: list[str] = []

    def execute(self, agent, task, context):
        self.calls.append((agent.role, task.id, [o.task_id for o in context]))
        self.contexts.append(TraceContext.current_or_none())
        self.threads.append(threading.current_thread().name)
        if self.barrier is not None:
            self.barrier.wait()
        if any(task.id.startswith(prefix) for prefix in self.fail_on):
            raise RuntimeError(f"model unavailable for {task.id}")

        prompt = build_prompt(agent, task, context)
        self.prompts.append(prompt)
        return TaskOutput(
            task_id=task.id,
            raw_output=self.responses.get(task.id, f"{agent.role} finished {task.id}"),
            prompt=prompt,
            reasoning=self.reasoning,
            tools_used=list(self.tools_used),
            prompt_tokens=self.prompt_tokens,
            completion_tokens=self.completion_tokens,
        )

    @property
    def task_ids(self) -> list[str]:
        return [task_id for _, task_id, _ in self.calls]


@pytest.fixture(autouse=True)
def clean_trace_context():
    """Every test starts and ends without an ambient trace context."""
    TraceContext.clear()
    yield
    TraceContext.clear()


@pytest.fixture
def settings() -> ObservabilitySettings:
    """Observability settings with every feature on, including decision tracing."""
    return ObservabilitySettings(
        enabled=True,
        decision_tracing_enabled=True,
        replay=ReplaySettings(max_events_in_memory=1000),
        decision=DecisionSettings(),
    )


@pytest.fixture
def disabled_settings() -> ObservabilitySettings:
    """Observability settings with the master switch off."""
    return ObservabilitySettings(enabled=False, decision_tracing_enabled=True)


@pytest.fixture
def executor() -> ScriptedExecutor:
    return ScriptedExecutor()


@pytest.fixture
def make_executor() -> Callable[..., ScriptedExecutor]:
    """Factory for additional scripted executors, e.g. for a manager agent."""
    return ScriptedExecutor


@pytest.fixture
def make_agent(executor) -> Callable[..., Agent]:
    """Factory for agents backed by the shared scripted executor."""

    def _make(
        role: str = "Researcher",
        goal: str = "Find accurate information",
        backstory: str = "A careful analyst",
        **kwargs,
    ) -> Agent:
        kwargs.setdefault("executor", executor)
        return Agent(role=role, goal=goal, backstory=backstory, **kwargs)

    return _make


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def collected_events(event_bus) -> list[SwarmEvent]:
    """Every event published on ``event_bus``, in publication order."""
    events: list[SwarmEvent] = []
    event_bus.subscribe(events.append)
    return events


@pytest.fixture
def decision_tracer(settings) -> DecisionTracer:
    return DecisionTracer(settings)


@pytest.fixture
def event_store(settings) -> InMemoryEventStore:
    return InMemoryEventStore(settings)
