from typing import Optional

from pydantic import ValidationError


class AgentCoreError(Exception):
    """Base class for errors raised by agentcore itself"""


class AgentConfigurationError(AgentCoreError):
    """Invalid or missing configuration detected at construction time"""


class DuplicateRegistrationError(AgentConfigurationError):
    """An agent or tool with the same identifier is already registered"""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} with ID '{identifier}' is already registered")


class HistoryStateError(AgentCoreError):
    """Illegal transition on a history entry"""


class ToolNotFoundError(AgentCoreError):
    """Requested tool is not registered"""


class ToolValidationError(AgentCoreError):
    """Tool arguments do not match the tool's parameter schema"""

    def __init__(self, tool_name: str, validation_error: Optional[ValidationError] = None, message: Optional[str] = None):
        self.tool_name = tool_name
        self.validation_error = validation_error
        detail = message or (str(validation_error) if validation_error else "invalid arguments")
        super().__init__(f"Invalid arguments for tool '{tool_name}': {detail}")


class StreamClosedError(AgentCoreError):
    """The consumer closed a stream before the provider finished it"""
