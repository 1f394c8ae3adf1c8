"""
Tool capability interface.

A tool is a named capability an agent may call. The engine only cares about
its name (for worker selection and decision tagging); the work itself is
done by ``execute``.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from agent_swarm.config import ObservabilitySettings, get_settings
from agent_swarm.observability.context import TraceContext
from agent_swarm.observability.structured_logging import StructuredLogger

logger = logging.getLogger(__name__)


class BaseTool(ABC):
    """
    Base class for tools.

    Subclasses implement ``execute``; callers go through ``run``, which traces
    the call as its own span.
    """

    name: str = ""
    description: str = ""

    def __init__(self, settings: Optional[ObservabilitySettings] = None):
        if not self.name:
            raise ValueError(f"{type(self).__name__} must define a tool name")
        self._settings = settings

    @property
    def settings(self) -> ObservabilitySettings:
        if self._settings is None:
            self._settings = get_settings().observability
        return self._settings

    @abstractmethod
    def execute(self, parameters: dict[str, Any]) -> Any:
        """
        Perform the tool's work.

        Args:
            parameters: Tool arguments

        Returns:
            The result, or an error string the agent can read
        """
        pass

    def run(self, parameters: Optional[dict[str, Any]] = None) -> Any:
        """Execute the tool inside a traced span."""
        parameters = parameters or {}
        if not self.settings.is_tool_tracing_active:
            return self.execute(parameters)

        structured = StructuredLogger(self.settings)
        with TraceContext.span(tool_name=self.name) as span:
            structured.log_tool_start(self.name, parameters)
            started = time.perf_counter()
            try:
                result = self.execute(parameters)
            except Exception as e:
                duration_ms = int((time.perf_counter() - started) * 1000)
                span.record_timing("tool_execution", duration_ms)
                structured.log_tool_complete(self.name, False, duration_ms, type(e).__name__)
                raise
            duration_ms = int((time.perf_counter() - started) * 1000)
            span.record_timing("tool_execution", duration_ms)
            structured.log_tool_complete(self.name, True, duration_ms)
            return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class FunctionTool(BaseTool):
    """Adapts a plain function into a tool."""

    def __init__(
        self,
        name: str,
        func: Callable[[dict[str, Any]], Any],
        description: str = "",
        settings: Optional[ObservabilitySettings] = None,
    ):
        self.name = name
        self.description = description or (func.__doc__ or "").strip()
        self.func = func
        super().__init__(settings=settings)

    def execute(self, parameters: dict[str, Any]) -> Any:
        return self.func(parameters)
