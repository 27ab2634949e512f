"""Operation orchestration core for LLM agents."""

from agentcore.domain.context.context_retriever import BaseRetriever
from agentcore.domain.context.memory.base_memory import BaseMemory
from agentcore.domain.context.memory.runtime_memory import RuntimeMemory
from agentcore.domain.events.event_bus import AgentEventEmitter
from agentcore.domain.events.schema.events import TimelineEvent, TimelineEventKey
from agentcore.domain.hooks.hook_dispatcher import AgentHooks, create_hooks
from agentcore.domain.models.agent_state import (
    AgentStatus, HistoryEntry, Message, MessageRole, OperationContext, Step, StepType,
    ToolExecutionContext
)
from agentcore.domain.models.errors import (
    AgentConfigurationError, AgentCoreError, DuplicateRegistrationError, HistoryStateError,
    StreamClosedError, ToolNotFoundError, ToolValidationError
)
from agentcore.domain.orchestration.core.main_agent import Agent
from agentcore.domain.provider.base_provider import (
    LLMProvider, ProviderObjectResponse, ProviderObjectStreamResponse,
    ProviderTextResponse, ProviderTextStreamResponse, Usage
)
from agentcore.domain.registry.local_registry import LocalAgentRegistry
from agentcore.domain.tool.tool_registry import Tool, create_tool
from agentcore.infrastructure.config.settings import AgentSettings, get_settings
from agentcore.infrastructure.observability.logging import setup_logging

__version__ = "0.1.0"

__all__ = [
    "Agent",
    "AgentConfigurationError",
    "AgentCoreError",
    "AgentEventEmitter",
    "AgentHooks",
    "AgentSettings",
    "AgentStatus",
    "BaseMemory",
    "BaseRetriever",
    "DuplicateRegistrationError",
    "HistoryEntry",
    "HistoryStateError",
    "LLMProvider",
    "LocalAgentRegistry",
    "Message",
    "MessageRole",
    "OperationContext",
    "ProviderObjectResponse",
    "ProviderObjectStreamResponse",
    "ProviderTextResponse",
    "ProviderTextStreamResponse",
    "RuntimeMemory",
    "Step",
    "StepType",
    "StreamClosedError",
    "TimelineEvent",
    "TimelineEventKey",
    "Tool",
    "ToolExecutionContext",
    "ToolNotFoundError",
    "ToolValidationError",
    "Usage",
    "create_hooks",
    "create_tool",
    "get_settings",
    "setup_logging",
]
