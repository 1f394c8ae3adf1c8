"""
Trace context propagation.

A TraceContext identifies one span of work inside a swarm run. Every span in
a run shares the run's correlation id and trace id; each span has its own
span id and points at the span that created it.

The current context is held in a ContextVar, so it is private to the thread
(or asyncio task) that installed it. Work handed to another thread must be
given its parent explicitly::

    parent = TraceContext.current_or_none()
    executor.submit(run_with_parent, parent)

    def run_with_parent(parent):
        with TraceContext.span(parent=parent, task_id="t1"):
            ...
"""

import contextvars
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

# Context variable for trace context propagation
_current_context: contextvars.ContextVar[Optional["TraceContext"]] = (
    contextvars.ContextVar("swarm_trace_context", default=None)
)

# Fields a child inherits from its parent unless overridden
_INHERITED_FIELDS = ("swarm_id", "agent_id", "task_id")


def create_correlation_id() -> str:
    return str(uuid.uuid4())


def create_span_id() -> str:
    return uuid.uuid4().hex[:16]


class TraceContext:
    """
    Identifiers and per-span data for one unit of traced work.

    correlation_id, trace_id, span_id and parent_span_id are fixed at
    construction. attributes are copied into children by value; timings
    belong to this span only.
    """

    def __init__(
        self,
        correlation_id: Optional[str] = None,
        trace_id: Optional[str] = None,
        parent_span_id: Optional[str] = None,
        swarm_id: Optional[str] = None,
        agent_id: Optional[str] = None,
        task_id: Optional[str] = None,
        tool_name: Optional[str] = None,
        attributes: Optional[dict[str, Any]] = None,
    ):
        self._correlation_id = correlation_id or create_correlation_id()
        self._trace_id = trace_id or create_correlation_id()
        self._span_id = create_span_id()
        self._parent_span_id = parent_span_id

        self.swarm_id = swarm_id
        self.agent_id = agent_id
        self.task_id = task_id
        self.tool_name = tool_name

        self.start_time = datetime.now(timezone.utc)
        self._started = time.perf_counter()
        self.attributes: dict[str, Any] = dict(attributes or {})
        self.timings: dict[str, int] = {}

    # ==================== Identity ====================

    @property
    def correlation_id(self) -> str:
        return self._correlation_id

    @property
    def trace_id(self) -> str:
        return self._trace_id

    @property
    def span_id(self) -> str:
        return self._span_id

    @property
    def parent_span_id(self) -> Optional[str]:
        return self._parent_span_id

    @property
    def is_root(self) -> bool:
        return self._parent_span_id is None

    # ==================== Factory / current context ====================

    @classmethod
    def create(cls, **fields: Any) -> "TraceContext":
        """Create a new root context and install it as current."""
        context = cls(**fields)
        _current_context.set(context)
        return context

    @classmethod
    def create_child(
        cls,
        parent: Optional["TraceContext"] = None,
        **fields: Any,
    ) -> "TraceContext":
        """
        Create a child of ``parent`` (or of the current context) and install it.

        A root is created first when there is neither an explicit parent nor
        a current context.
        """
        if parent is None:
            parent = cls.current()

        for name in _INHERITED_FIELDS:
            fields.setdefault(name, getattr(parent, name))

        attributes = dict(parent.attributes)
        attributes.update(fields.pop("attributes", None) or {})

        child = cls(
            correlation_id=parent.correlation_id,
            trace_id=parent.trace_id,
            parent_span_id=parent.span_id,
            attributes=attributes,
            **fields,
        )
        _current_context.set(child)
        return child

    @classmethod
    def current(cls) -> "TraceContext":
        """Get the current context, creating a root if there is none."""
        context = _current_context.get()
        if context is None:
            context = cls.create()
        return context

    @classmethod
    def current_or_none(cls) -> Optional["TraceContext"]:
        return _current_context.get()

    @classmethod
    def restore(cls, context: Optional["TraceContext"]) -> None:
        """Reinstall a previously saved context, or clear when None."""
        _current_context.set(context)

    @classmethod
    def clear(cls) -> None:
        _current_context.set(None)

    @classmethod
    @contextmanager
    def span(
        cls,
        parent: Optional["TraceContext"] = None,
        root: bool = False,
        **fields: Any,
    ) -> Iterator["TraceContext"]:
        """
        Run a block inside a new span.

        The context that was current on entry is restored on every exit,
        including exceptions.

        Args:
            parent: Explicit parent, used when crossing a thread boundary
            root: Start a new run instead of deriving from the current span
            **fields: swarm_id, agent_id, task_id, tool_name, attributes
        """
        previous = _current_context.get()
        if root:
            context = cls.create(**fields)
        else:
            context = cls.create_child(parent=parent, **fields)
        try:
            yield context
        finally:
            cls.restore(previous)

    # ==================== Span data ====================

    def with_attribute(self, key: str, value: Any) -> "TraceContext":
        self.attributes[key] = value
        return self

    def record_timing(self, phase: str, duration_ms: int) -> None:
        """Attach a named timing to this span only."""
        self.timings[phase] = duration_ms

    @property
    def elapsed_ms(self) -> int:
        """Wall-clock milliseconds since this context was created."""
        return int((time.perf_counter() - self._started) * 1000)

    def get_elapsed_ms(self) -> int:
        return self.elapsed_ms

    def to_log_fields(self) -> dict[str, str]:
        """Identifiers for log records; unset fields are omitted."""
        fields = {
            "correlation_id": self.correlation_id,
            "trace_id": self.trace_id,
            "span_id": self.span_id,
            "parent_span_id": self.parent_span_id,
            "swarm_id": self.swarm_id,
            "agent_id": self.agent_id,
            "task_id": self.task_id,
            "tool_name": self.tool_name,
        }
        return {key: value for key, value in fields.items() if value is not None}

    def __repr__(self) -> str:
        return (
            f"TraceContext(correlation_id={self.correlation_id!r}, "
            f"span_id={self.span_id!r}, parent_span_id={self.parent_span_id!r})"
        )
