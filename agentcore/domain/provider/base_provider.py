from typing import Any, Awaitable, Callable, Dict, List, Optional, TYPE_CHECKING
from abc import ABC, abstractmethod
from pydantic import BaseModel, ConfigDict, Field

from agentcore.domain.models.agent_state import Message, Step, ToolExecutionContext

if TYPE_CHECKING:
    from agentcore.domain.tool.tool_registry import Tool

StepCallback = Callable[[Step], Awaitable[None]]


class Usage(BaseModel):
    """Token accounting reported by a provider"""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ProviderTextResponse(BaseModel):
    """Result of a blocking text generation"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    text: str
    provider: Any = None
    usage: Optional[Usage] = None
    tool_calls: List[Dict[str, Any]] = Field(default_factory=list)
    tool_results: List[Dict[str, Any]] = Field(default_factory=list)
    finish_reason: Optional[str] = None


class ProviderObjectResponse(BaseModel):
    """Result of a blocking structured generation"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    object: Any
    provider: Any = None
    usage: Optional[Usage] = None
    finish_reason: Optional[str] = None


class ProviderTextStreamResponse(BaseModel):
    """Lazily consumed text stream; `text_stream` is an async iterator of str"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    text_stream: Any
    provider: Any = None


class ProviderObjectStreamResponse(BaseModel):
    """Lazily consumed object stream; `object_stream` yields partial objects"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    object_stream: Any
    provider: Any = None


class LLMProvider(ABC):
    """Model backend capability exposing the four generation modes.

    Providers own the tool-calling loop. Every step they commit must be reported
    through `on_step_finish`, in completion order, awaiting each call before
    surfacing the next one.
    """

    def get_model_identifier(self, model: Any) -> str:
        if model is None:
            return "unknown"
        return str(getattr(model, "model_id", None) or getattr(model, "modelId", None) or model)

    @abstractmethod
    async def generate_text(
        self,
        messages: List[Message],
        model: Any = None,
        tools: Optional[List["Tool"]] = None,
        max_steps: Optional[int] = None,
        on_step_finish: Optional[StepCallback] = None,
        tool_execution_context: Optional[ToolExecutionContext] = None,
    ) -> ProviderTextResponse:
        pass

    @abstractmethod
    async def stream_text(
        self,
        messages: List[Message],
        model: Any = None,
        tools: Optional[List["Tool"]] = None,
        max_steps: Optional[int] = None,
        on_step_finish: Optional[StepCallback] = None,
        tool_execution_context: Optional[ToolExecutionContext] = None,
    ) -> ProviderTextStreamResponse:
        pass

    @abstractmethod
    async def generate_object(
        self,
        messages: List[Message],
        schema: Any,
        model: Any = None,
        on_step_finish: Optional[StepCallback] = None,
        tool_execution_context: Optional[ToolExecutionContext] = None,
    ) -> ProviderObjectResponse:
        pass

    @abstractmethod
    async def stream_object(
        self,
        messages: List[Message],
        schema: Any,
        model: Any = None,
        on_step_finish: Optional[StepCallback] = None,
        tool_execution_context: Optional[ToolExecutionContext] = None,
    ) -> ProviderObjectStreamResponse:
        pass
