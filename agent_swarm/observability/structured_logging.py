"""
Structured logging with trace context.

Log records carry the ids of the current TraceContext (correlation id, span
id, agent id ...) as record attributes, so a formatter or a log shipper can
group every line of one swarm run.
"""

import logging
from typing import Any, Optional

from agent_swarm.config import ObservabilitySettings, Settings
from agent_swarm.observability.context import TraceContext

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] - %(message)s"

# Record attributes populated from the trace context
CONTEXT_FIELDS = (
    "correlation_id",
    "trace_id",
    "span_id",
    "parent_span_id",
    "swarm_id",
    "agent_id",
    "task_id",
    "tool_name",
)


class TraceContextFilter(logging.Filter):
    """Copies the current trace ids onto every log record."""

    def __init__(self, placeholder: str = "-"):
        super().__init__()
        self.placeholder = placeholder

    def filter(self, record: logging.LogRecord) -> bool:
        context = TraceContext.current_or_none()
        fields = context.to_log_fields() if context else {}
        for name in CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, fields.get(name, self.placeholder))
        return True


def configure_logging(settings: Settings) -> None:
    """
    Configure root logging for the application.

    Installs the trace context filter on the root handlers so that
    ``%(correlation_id)s`` is always resolvable.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format=LOG_FORMAT,
    )
    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if not any(isinstance(f, TraceContextFilter) for f in handler.filters):
            handler.addFilter(TraceContextFilter())


def _truncate(text: Optional[str], max_length: int) -> str:
    if text is None:
        return ""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


class StructuredLogger:
    """
    Domain-level log statements for swarm execution.

    Every method is silent when structured logging is disabled.
    """

    def __init__(
        self,
        settings: Optional[ObservabilitySettings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.settings = settings or ObservabilitySettings()
        self.logger = logger or logging.getLogger("agent_swarm.observability")

    @property
    def enabled(self) -> bool:
        return self.settings.is_structured_logging_active

    def _log(self, level: int, message: str, exc_info: Any = None) -> None:
        if not self.enabled:
            return
        context = TraceContext.current_or_none()
        extra = context.to_log_fields() if context else {}
        self.logger.log(level, message, exc_info=exc_info, extra=extra)

    # ==================== Swarm ====================

    def log_swarm_start(self, swarm_id: str, agent_count: int, task_count: int) -> None:
        self._log(
            logging.INFO,
            f"Swarm started: swarm_id={swarm_id}, agents={agent_count}, tasks={task_count}",
        )

    def log_swarm_complete(self, swarm_id: str, success: bool, duration_ms: int) -> None:
        if success:
            self._log(
                logging.INFO,
                f"Swarm completed successfully: swarm_id={swarm_id}, duration_ms={duration_ms}",
            )
        else:
            self._log(
                logging.WARNING,
                f"Swarm failed: swarm_id={swarm_id}, duration_ms={duration_ms}",
            )

    def log_swarm_error(self, swarm_id: str, error: BaseException) -> None:
        self._log(
            logging.ERROR,
            f"Swarm error: swarm_id={swarm_id}, error={error}",
            exc_info=error,
        )

    # ==================== Tasks ====================

    def log_task_start(self, task_id: str, description: str, agent_role: Optional[str] = None) -> None:
        self._log(
            logging.INFO,
            f"Task started: task_id={task_id}, agent={agent_role}, "
            f"description={_truncate(description, 100)}",
        )

    def log_task_complete(self, task_id: str, status: str, duration_ms: int) -> None:
        self._log(
            logging.INFO,
            f"Task completed: task_id={task_id}, status={status}, duration_ms={duration_ms}",
        )

    def log_task_skipped(self, task_id: str) -> None:
        self._log(logging.INFO, f"Task skipped due to condition: task_id={task_id}")

    def log_task_error(self, task_id: str, error: BaseException) -> None:
        self._log(
            logging.ERROR,
            f"Task failed: task_id={task_id}, error_type={type(error).__name__}, error={error}",
        )

    # ==================== Delegation / decisions ====================

    def log_delegation(self, from_agent_id: str, to_agent_id: str, task_id: str, reason: str) -> None:
        self._log(
            logging.INFO,
            f"Task delegated: from={from_agent_id}, to={to_agent_id}, "
            f"task_id={task_id}, reason={_truncate(reason, 200)}",
        )

    def log_decision(
        self,
        agent_id: Optional[str],
        task_id: Optional[str],
        decision: Optional[str],
        reasoning: Optional[str],
    ) -> None:
        if not self.settings.is_decision_tracing_active:
            return
        self._log(
            logging.INFO,
            f"Agent decision: agent_id={agent_id}, task_id={task_id}, "
            f"decision={_truncate(decision, 200)}, reasoning={_truncate(reasoning, 500)}",
        )

    def log_token_usage(self, agent_id: str, prompt_tokens: int, completion_tokens: int) -> None:
        self._log(
            logging.DEBUG,
            f"Token usage: agent_id={agent_id}, prompt_tokens={prompt_tokens}, "
            f"completion_tokens={completion_tokens}, total={prompt_tokens + completion_tokens}",
        )

    # ==================== Tools ====================

    def log_tool_start(self, tool_name: str, parameters: Optional[dict[str, Any]] = None) -> None:
        # Parameters may hold user data; only log them alongside decision tracing
        if self.settings.is_decision_tracing_active and parameters is not None:
            self._log(logging.DEBUG, f"Tool invoked: tool={tool_name}, parameters={parameters}")
        else:
            self._log(logging.DEBUG, f"Tool invoked: tool={tool_name}")

    def log_tool_complete(
        self,
        tool_name: str,
        success: bool,
        duration_ms: int,
        error_type: Optional[str] = None,
    ) -> None:
        if success:
            self._log(logging.DEBUG, f"Tool completed: tool={tool_name}, duration_ms={duration_ms}")
        else:
            self._log(
                logging.WARNING,
                f"Tool failed: tool={tool_name}, duration_ms={duration_ms}, error={error_type}",
            )
