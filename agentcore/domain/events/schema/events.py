from typing import Dict, Any, Optional
from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum
import uuid


class TimelineEventKey(str, Enum):
    """Timeline event keys"""
    AGENT_START = "agent:start"
    AGENT_SUCCESS = "agent:success"
    AGENT_ERROR = "agent:error"
    STEP_TEXT = "step:text"
    TOOL_START = "tool:start"
    TOOL_SUCCESS = "tool:success"
    AGENT_REGISTERED = "agent:registered"
    AGENT_UNREGISTERED = "agent:unregistered"


class TimelineEvent(BaseModel):
    """Externally observable notification of an entry or step mutation"""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    key: TimelineEventKey
    payload: Dict[str, Any] = Field(default_factory=dict)
    history_id: Optional[str] = None
    agent_id: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class EntryPayload(BaseModel):
    """Payload for agent:* events, enough to rebuild the entry without the recorder"""
    entry_id: str
    status: str
    input: Any = None
    output: Any = None
    error: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    step_count: int = 0
    user_id: Optional[str] = None
    conversation_id: Optional[str] = None


class StepPayload(BaseModel):
    """Payload for step/tool events"""
    entry_id: str
    index: int
    step: Dict[str, Any]


class SubAgentPayload(BaseModel):
    """Payload for events propagated from a sub-agent to its ancestors"""
    id: str
    display_name: str
    status: str
    entry_id: str
    input: Any = None
    output: Any = None
    error: Optional[str] = None
