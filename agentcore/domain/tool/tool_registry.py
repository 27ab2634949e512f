from typing import Dict, List, Any, Callable, Iterable, Optional, Type
from pydantic import BaseModel
import structlog

from agentcore.domain.models.agent_state import ToolExecutionContext
from agentcore.domain.models.errors import DuplicateRegistrationError, ToolNotFoundError

logger = structlog.get_logger(__name__)


class Tool:
    """A callable capability the provider may invoke during an operation"""

    def __init__(
        self,
        name: str,
        description: str,
        parameters: Type[BaseModel],
        execute: Callable[[BaseModel, Optional[ToolExecutionContext]], Any],
        id: Optional[str] = None
    ):
        if not name:
            raise ValueError("Tool name is required")
        self.id = id or name
        self.name = name
        self.description = description
        self.parameters = parameters
        self.execute = execute

    @property
    def parameters_schema(self) -> Dict[str, Any]:
        return self.parameters.model_json_schema()

    async def run(self, args: Dict[str, Any], execution_context: Optional[ToolExecutionContext] = None) -> Any:
        """Validate `args` against the schema, then execute"""
        from .tool_executor import ToolExecutor

        return await ToolExecutor().execute(self, args, execution_context)

    def get_info(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters_schema
        }

    def __repr__(self) -> str:
        return f"Tool(name={self.name!r})"


def create_tool(
    name: str,
    description: str,
    parameters: Type[BaseModel],
    execute: Callable[..., Any],
    id: Optional[str] = None
) -> Tool:
    return Tool(name=name, description=description, parameters=parameters, execute=execute, id=id)


class ToolManager:
    """Registry for the tools of one agent"""

    def __init__(self, tools: Optional[Iterable[Tool]] = None):
        self.tools: Dict[str, Tool] = {}
        for tool in tools or []:
            self.register_tool(tool)

    def register_tool(self, tool: Tool):
        """Register a new tool; names are unique per agent"""

        if tool.name in self.tools:
            raise DuplicateRegistrationError("Tool", tool.name)

        self.tools[tool.name] = tool
        logger.debug("Tool registered", tool=tool.name)

    def remove_tool(self, name: str) -> bool:
        return self.tools.pop(name, None) is not None

    def get_tool(self, name: str) -> Tool:
        tool = self.tools.get(name)
        if tool is None:
            raise ToolNotFoundError(f"Tool '{name}' is not registered")
        return tool

    def get_tools(self) -> List[Tool]:
        """Tools in registration order"""
        return list(self.tools.values())

    def names(self) -> List[str]:
        return list(self.tools.keys())

    def search_tools(self, query: str) -> List[Tool]:
        """Search tools by name or description"""

        query_lower = query.lower()
        return [
            tool for tool in self.tools.values()
            if query_lower in tool.name.lower() or query_lower in tool.description.lower()
        ]
