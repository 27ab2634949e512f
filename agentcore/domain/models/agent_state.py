from typing import Dict, Any, List, Optional, Hashable, TYPE_CHECKING
from dataclasses import dataclass, field
from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from enum import Enum
import uuid

if TYPE_CHECKING:
    from agentcore.domain.orchestration.core.main_agent import Agent


def _new_id() -> str:
    return str(uuid.uuid4())


class AgentStatus(str, Enum):
    """History entry / agent status"""
    IDLE = "idle"
    WORKING = "working"
    COMPLETED = "completed"
    ERROR = "error"


TERMINAL_STATUSES = frozenset({AgentStatus.COMPLETED, AgentStatus.ERROR})


class MessageRole(str, Enum):
    """Roles a message can carry"""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class Message(BaseModel):
    """A single role-tagged message sent to the provider"""
    role: MessageRole
    content: Any

    @classmethod
    def system(cls, content: Any) -> "Message":
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: Any) -> "Message":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: Any) -> "Message":
        return cls(role=MessageRole.ASSISTANT, content=content)

    def text(self) -> str:
        """Flatten content parts into plain text"""
        if isinstance(self.content, str):
            return self.content
        if isinstance(self.content, list):
            parts = []
            for part in self.content:
                if isinstance(part, str):
                    parts.append(part)
                elif isinstance(part, dict) and part.get("type") == "text":
                    parts.append(str(part.get("text", "")))
            return "".join(parts)
        return "" if self.content is None else str(self.content)


class StepType(str, Enum):
    """Kinds of provider progress"""
    TEXT = "text"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"


class Step(BaseModel):
    """One unit of provider progress, tagged by `type`"""
    id: str = Field(default_factory=_new_id, description="Step identifier (tool call id for tool steps)")
    type: StepType
    role: MessageRole = MessageRole.ASSISTANT
    content: Any = None
    name: Optional[str] = Field(None, description="Tool name for tool steps")
    arguments: Optional[Dict[str, Any]] = None
    result: Any = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode="after")
    def _check_variant(self) -> "Step":
        if self.type in (StepType.TOOL_CALL, StepType.TOOL_RESULT) and not self.name:
            raise ValueError(f"{self.type.value} step requires a tool name")
        if self.type == StepType.TOOL_CALL and self.arguments is None:
            self.arguments = {}
        return self

    @property
    def dedupe_key(self) -> tuple:
        # A tool call and its result share an id, so the type is part of the identity
        return (self.type.value, self.id)

    @classmethod
    def text_step(cls, content: str, id: Optional[str] = None, role: MessageRole = MessageRole.ASSISTANT) -> "Step":
        return cls(type=StepType.TEXT, content=content, role=role, id=id or _new_id())

    @classmethod
    def tool_call(cls, id: str, name: str, arguments: Optional[Dict[str, Any]] = None) -> "Step":
        return cls(type=StepType.TOOL_CALL, id=id, name=name, arguments=arguments or {}, content=f"Using {name}")

    @classmethod
    def tool_result(cls, id: str, name: str, result: Any) -> "Step":
        return cls(type=StepType.TOOL_RESULT, id=id, name=name, result=result, role=MessageRole.TOOL, content=result)


class HistoryEntry(BaseModel):
    """Persisted record of one operation's lifecycle and outcome"""
    id: str = Field(default_factory=_new_id)
    input: Any
    output: Any = None
    status: AgentStatus = Field(default=AgentStatus.WORKING)
    start_time: datetime = Field(default_factory=datetime.utcnow)
    end_time: Optional[datetime] = None
    steps: List[Step] = Field(default_factory=list)
    user_id: Optional[str] = None
    conversation_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


# Bookkeeping keys written into every user_context before hooks run
AGENT_START_TIME_KEY = "agent_start_time"
AGENT_START_EVENT_ID_KEY = "agent_start_event_id"


@dataclass
class OperationContext:
    """Isolated per-invocation state, passed by reference into hooks and tools"""
    operation_id: str
    history_entry: HistoryEntry
    user_context: Dict[Hashable, Any] = field(default_factory=dict)
    steps: List[Step] = field(default_factory=list)
    start_time: datetime = field(default_factory=datetime.utcnow)
    conversation_id: Optional[str] = None
    user_id: Optional[str] = None
    is_active: bool = True

    @property
    def history_entry_id(self) -> str:
        return self.history_entry.id


@dataclass
class ToolExecutionContext:
    """Execution context handed to in-flight tool calls"""
    operation_context: OperationContext
    agent_id: str
    history_entry_id: str
    agent: Optional["Agent"] = None
