from typing import Dict, Any, Hashable, Optional
from abc import ABC, abstractmethod

from agentcore.infrastructure.observability.logging import agent_logger

RELEVANT_CONTEXT_HEADING = "\nRelevant Context:\n"


class BaseRetriever(ABC):
    """Supplies contextual text for a query"""

    def __init__(
        self,
        name: str = "search_knowledge",
        description: str = "Searches for relevant information in the knowledge base based on the query."
    ):
        self.name = name
        self.description = description

    @abstractmethod
    async def retrieve(self, text: str, user_context: Optional[Dict[Hashable, Any]] = None) -> str:
        """Retrieve relevant content for `text`.

        Implementations may write auxiliary data (e.g. source references) into
        `user_context`; it is the live map of the current operation.
        """
        pass


class ContextRetriever:
    """Best-effort augmentation of the system message with retrieved content"""

    def __init__(self, retriever: Optional[BaseRetriever], agent_id: str):
        self.retriever = retriever
        self.agent_id = agent_id

    async def retrieve_relevant_context(self, query: str, user_context: Dict[Hashable, Any]) -> Optional[str]:
        """Return retrieved text, or None when unconfigured or failing"""

        if self.retriever is None:
            return None

        try:
            return await self.retriever.retrieve(query, user_context=user_context)
        except Exception as e:
            agent_logger.log_collaborator_failure("retriever", self.agent_id, e, query=query[:50])
            return None

    @staticmethod
    def augment(instructions: str, retrieved: Optional[str]) -> str:
        """Embed retrieved text under the fixed heading"""

        if not retrieved:
            return instructions
        return f"{instructions}{RELEVANT_CONTEXT_HEADING}{retrieved}"
