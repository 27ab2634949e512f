from typing import Any, Dict, Optional, TYPE_CHECKING
import inspect
import time

from agentcore.domain.models.agent_state import ToolExecutionContext
from agentcore.infrastructure.observability.logging import agent_logger
from .tool_validator import ToolParameterValidator

if TYPE_CHECKING:
    from .tool_registry import Tool


class ToolExecutor:
    """Runs a tool with schema-validated arguments inside an operation's context"""

    async def execute(
        self,
        tool: "Tool",
        parameters: Optional[Dict[str, Any]],
        context: Optional[ToolExecutionContext] = None
    ) -> Any:
        # Invalid arguments never reach tool.execute
        args = ToolParameterValidator.validate_tool_call(tool, parameters)

        agent_id = context.agent_id if context else "unknown"
        history_id = context.history_entry_id if context else "unknown"
        started = time.perf_counter()

        try:
            result = tool.execute(args, context)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            agent_logger.log_tool_execution(
                tool.name, agent_id, history_id,
                duration_ms=(time.perf_counter() - started) * 1000,
                success=False,
                error=str(e)
            )
            raise

        agent_logger.log_tool_execution(
            tool.name, agent_id, history_id,
            duration_ms=(time.perf_counter() - started) * 1000
        )
        return result
