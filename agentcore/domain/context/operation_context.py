from typing import Any, Dict, Hashable, Mapping, Optional
from datetime import datetime
import uuid
import structlog

from agentcore.domain.models.agent_state import (
    OperationContext, HistoryEntry,
    AGENT_START_TIME_KEY, AGENT_START_EVENT_ID_KEY
)

logger = structlog.get_logger(__name__)


class OperationContextFactory:
    """Creates a fresh, isolated OperationContext for every invocation"""

    def create(
        self,
        history_entry: HistoryEntry,
        seed_user_context: Optional[Mapping[Hashable, Any]] = None,
        start_event_id: Optional[str] = None,
        conversation_id: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> OperationContext:
        """Build a context whose user_context never shares storage with the seed"""

        user_context: Dict[Hashable, Any] = dict(seed_user_context) if seed_user_context else {}

        start_time = datetime.utcnow()
        user_context[AGENT_START_TIME_KEY] = start_time.isoformat()
        user_context[AGENT_START_EVENT_ID_KEY] = start_event_id or str(uuid.uuid4())

        context = OperationContext(
            operation_id=str(uuid.uuid4()),
            history_entry=history_entry,
            user_context=user_context,
            start_time=start_time,
            conversation_id=conversation_id,
            user_id=user_id
        )

        logger.debug(
            "Operation context created",
            operation_id=context.operation_id,
            history_id=history_entry.id,
            seeded_keys=len(seed_user_context) if seed_user_context else 0
        )
        return context
