# Parameter validation
from typing import Any, Dict, Optional, TYPE_CHECKING
from pydantic import BaseModel, ValidationError

from agentcore.domain.models.errors import ToolValidationError

if TYPE_CHECKING:
    from .tool_registry import Tool


class ToolParameterValidator:
    @staticmethod
    def validate_tool_call(tool: "Tool", parameters: Optional[Dict[str, Any]]) -> BaseModel:
        if isinstance(parameters, tool.parameters):
            return parameters
        if parameters is not None and not isinstance(parameters, dict):
            raise ToolValidationError(tool.name, message=f"expected an object, got {type(parameters).__name__}")

        try:
            return tool.parameters.model_validate(parameters or {})
        except ValidationError as e:
            raise ToolValidationError(tool.name, e) from e
