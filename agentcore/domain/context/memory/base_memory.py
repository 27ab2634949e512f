"""Memory capability consumed by the agent."""

from typing import List, Optional
from abc import ABC, abstractmethod

from agentcore.domain.models.agent_state import Message


class BaseMemory(ABC):
    """Abstract base class for conversation memory stores."""

    @abstractmethod
    async def get_messages(
        self,
        user_id: str,
        conversation_id: Optional[str] = None,
        limit: int = 10,
    ) -> List[Message]:
        """Return at most `limit` most recent messages, oldest first."""
        pass

    @abstractmethod
    async def add_message(
        self,
        message: Message,
        user_id: str,
        conversation_id: Optional[str] = None,
    ) -> None:
        """Append a message to the user's conversation."""
        pass

    @property
    def memory_type(self) -> str:
        return type(self).__name__
