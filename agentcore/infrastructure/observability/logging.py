import structlog
import logging
import sys
from typing import Dict, Any, List, Optional
from datetime import datetime

from agentcore.infrastructure.config.settings import AgentSettings, get_settings


def build_processors(log_format: str) -> List[Any]:
    """Processor chain shared by every agentcore logger"""

    processors: List[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_service_context,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    return processors


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    service_name: Optional[str] = None,
    settings: Optional[AgentSettings] = None
) -> None:
    """Configure stdlib logging and structlog for an application embedding agents.

    Unset arguments fall back to AgentSettings (AGENTCORE_LOG_LEVEL,
    AGENTCORE_LOG_FORMAT, AGENTCORE_SERVICE_NAME). The library never calls
    this itself.
    """

    settings = settings or get_settings()
    level_name = (log_level or settings.log_level).upper()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO)
    )

    structlog.configure(
        processors=build_processors(log_format or settings.log_format),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=service_name or settings.service_name)


def add_service_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add service context to all log entries"""

    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.utcnow().isoformat()

    context = structlog.contextvars.get_contextvars()

    # Correlation ids bound for the duration of an operation
    for key in ("service", "agent_id", "operation_id", "history_id"):
        value = context.get(key)
        if value and key not in event_dict:
            event_dict[key] = value

    return event_dict


class AgentLogger:
    """Specialized logger for agent operations"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_operation_event(
        self,
        event_type: str,
        agent_id: str,
        history_id: str,
        data: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        """Log operation lifecycle events (start, success, error)"""

        self.logger.info(
            "operation_event",
            event_type=event_type,
            agent_id=agent_id,
            history_id=history_id,
            data=data or {},
            **kwargs
        )

    def log_step(
        self,
        agent_id: str,
        history_id: str,
        step_type: str,
        step_id: str,
        name: Optional[str] = None
    ):
        """Log a recorded provider step"""

        self.logger.debug(
            "step_recorded",
            agent_id=agent_id,
            history_id=history_id,
            step_type=step_type,
            step_id=step_id,
            name=name
        )

    def log_tool_execution(
        self,
        tool_name: str,
        agent_id: str,
        history_id: str,
        duration_ms: Optional[float] = None,
        success: bool = True,
        error: Optional[str] = None
    ):
        """Log tool execution events"""

        self.logger.info(
            "tool_execution",
            tool_name=tool_name,
            agent_id=agent_id,
            history_id=history_id,
            duration_ms=duration_ms,
            success=success,
            error=error
        )

    def log_hook_failure(
        self,
        hook_name: str,
        agent_id: str,
        error: BaseException,
        operation_id: Optional[str] = None
    ):
        """Log an exception raised from a lifecycle hook"""

        self.logger.error(
            "hook_failed",
            hook=hook_name,
            agent_id=agent_id,
            operation_id=operation_id,
            error=str(error),
            error_type=type(error).__name__
        )

    def log_collaborator_failure(
        self,
        collaborator: str,
        agent_id: str,
        error: BaseException,
        **kwargs
    ):
        """Log a recovered failure of an optional collaborator (retriever, memory)"""

        self.logger.warning(
            "collaborator_failed",
            collaborator=collaborator,
            agent_id=agent_id,
            error=str(error),
            error_type=type(error).__name__,
            **kwargs
        )


# Global logger instance
agent_logger = AgentLogger("agentcore")
