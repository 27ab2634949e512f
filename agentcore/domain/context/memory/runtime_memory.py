from typing import Dict, List, Optional, Tuple
from datetime import datetime
import asyncio
from collections import defaultdict

from agentcore.domain.models.agent_state import Message
from .base_memory import BaseMemory


class RuntimeMemory(BaseMemory):
    """In-process conversation memory keyed by user and conversation"""

    def __init__(self, max_messages: int = 100):
        self.max_messages = max_messages
        self.conversations: Dict[Tuple[str, Optional[str]], List[Dict]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def add_message(self, message: Message, user_id: str, conversation_id: Optional[str] = None) -> None:
        """Add a message to conversation history"""

        async with self._lock:
            history = self.conversations[(user_id, conversation_id)]
            history.append({
                "message": message.model_copy(deep=True),
                "timestamp": datetime.utcnow().isoformat()
            })

            if self.max_messages and len(history) > self.max_messages:
                self.conversations[(user_id, conversation_id)] = history[-self.max_messages:]

    async def get_messages(self, user_id: str, conversation_id: Optional[str] = None, limit: int = 10) -> List[Message]:
        """Get the most recent messages in chronological order"""

        async with self._lock:
            history = self.conversations.get((user_id, conversation_id), [])
            if limit <= 0:
                return []
            return [item["message"].model_copy(deep=True) for item in history[-limit:]]

    async def clear_session(self, user_id: str, conversation_id: Optional[str] = None):
        """Clear a conversation"""

        async with self._lock:
            self.conversations.pop((user_id, conversation_id), None)
