from typing import Any, Dict, List, Optional, Sequence, Union
import structlog

from agentcore.domain.models.agent_state import Message, MessageRole
from agentcore.infrastructure.observability.logging import agent_logger
from .context_retriever import ContextRetriever
from .memory.base_memory import BaseMemory

logger = structlog.get_logger(__name__)

OperationInput = Union[str, Sequence[Union[Message, Dict[str, Any]]]]


def normalize_input(input: OperationInput) -> List[Message]:
    """Turn caller input into messages without reordering them"""

    if isinstance(input, str):
        return [Message.user(input)]
    return [m if isinstance(m, Message) else Message.model_validate(m) for m in input]


def input_to_text(input: OperationInput) -> str:
    """Text used to query the retriever"""

    if isinstance(input, str):
        return input
    messages = normalize_input(input)
    user_texts = [m.text() for m in messages if m.role == MessageRole.USER]
    if user_texts:
        return user_texts[-1]
    return "\n".join(m.text() for m in messages)


class MessageAssembler:
    """Builds the ordered message list sent to the provider"""

    def __init__(self, memory: Optional[BaseMemory], agent_id: str):
        self.memory = memory
        self.agent_id = agent_id

    async def fetch_prior_messages(
        self,
        user_id: Optional[str],
        conversation_id: Optional[str],
        context_limit: int
    ) -> List[Message]:
        """Fetch up to `context_limit` prior messages; empty without a user identity"""

        if self.memory is None or not user_id:
            return []

        try:
            messages = await self.memory.get_messages(
                user_id=user_id,
                conversation_id=conversation_id,
                limit=context_limit
            )
        except Exception as e:
            agent_logger.log_collaborator_failure("memory", self.agent_id, e, user_id=user_id)
            return []

        # Never splice more than asked for, even if the store over-delivers
        return list(messages)[-context_limit:] if context_limit > 0 else []

    def assemble(
        self,
        instructions: str,
        retrieved_context: Optional[str],
        prior_messages: Optional[Sequence[Message]],
        input: OperationInput
    ) -> List[Message]:
        """System message first, memory next, caller input last"""

        system_content = ContextRetriever.augment(instructions, retrieved_context)
        messages = [Message.system(system_content)]
        messages.extend(prior_messages or [])
        messages.extend(normalize_input(input))

        logger.debug(
            "Messages assembled",
            agent_id=self.agent_id,
            total=len(messages),
            prior=len(prior_messages or []),
            augmented=bool(retrieved_context)
        )
        return messages
