from typing import Any, Dict, List, Optional, Set, Tuple, TYPE_CHECKING
from datetime import datetime
import structlog

from agentcore.domain.events.event_bus import AgentEventEmitter
from agentcore.domain.events.schema.events import (
    TimelineEvent, TimelineEventKey, EntryPayload, StepPayload
)
from agentcore.domain.models.agent_state import (
    AgentStatus, HistoryEntry, Step, StepType, TERMINAL_STATUSES
)
from agentcore.domain.models.errors import HistoryStateError
from agentcore.infrastructure.observability.logging import agent_logger

if TYPE_CHECKING:
    from agentcore.domain.registry.local_registry import LocalAgentRegistry

logger = structlog.get_logger(__name__)

STEP_EVENT_KEYS = {
    StepType.TEXT: TimelineEventKey.STEP_TEXT,
    StepType.TOOL_CALL: TimelineEventKey.TOOL_START,
    StepType.TOOL_RESULT: TimelineEventKey.TOOL_SUCCESS,
}


class HistoryManager:
    """Records history entries for one agent and mirrors every mutation on the event bus.

    Entry lifecycle is `working -> completed` or `working -> error`; both end states
    are final. Steps are appended in arrival order and a step already recorded
    (same type and id) is never recorded twice.
    """

    def __init__(
        self,
        agent_id: str,
        event_bus: Optional[AgentEventEmitter] = None,
        registry: Optional["LocalAgentRegistry"] = None,
        max_entries: int = 0
    ):
        self.agent_id = agent_id
        self.registry = registry
        self.max_entries = max_entries
        self._event_bus = event_bus
        self.entries: List[HistoryEntry] = []
        self._index: Dict[str, HistoryEntry] = {}
        self._recorded_steps: Dict[str, Set[Tuple[str, str]]] = {}

    @property
    def event_bus(self) -> AgentEventEmitter:
        return self._event_bus or AgentEventEmitter.get_instance()

    def add_entry(
        self,
        input: Any,
        user_id: Optional[str] = None,
        conversation_id: Optional[str] = None
    ) -> Tuple[HistoryEntry, TimelineEvent]:
        """Create a working entry and publish agent:start"""

        entry = HistoryEntry(input=input, user_id=user_id, conversation_id=conversation_id)
        self.entries.append(entry)
        self._index[entry.id] = entry
        self._recorded_steps[entry.id] = set()
        self._trim()

        event = self.event_bus.publish(
            TimelineEventKey.AGENT_START, self._entry_payload(entry), entry.id, self.agent_id
        )
        agent_logger.log_operation_event("start", self.agent_id, entry.id)
        self._propagate_to_parents(entry, created=True)
        return entry, event

    def add_step(self, entry: HistoryEntry, step: Step) -> bool:
        """Append a step; returns False when it was already recorded"""

        if entry.is_terminal:
            raise HistoryStateError(
                f"Cannot add step to history entry '{entry.id}' in terminal status '{entry.status.value}'"
            )

        recorded = self._recorded_steps.setdefault(entry.id, set())
        if step.dedupe_key in recorded:
            logger.debug("Duplicate step ignored", history_id=entry.id, step_id=step.id)
            return False

        recorded.add(step.dedupe_key)
        entry.steps.append(step)

        payload = StepPayload(
            entry_id=entry.id,
            index=len(entry.steps) - 1,
            step=step.model_dump()
        ).model_dump()
        self.event_bus.publish(STEP_EVENT_KEYS[step.type], payload, entry.id, self.agent_id)
        agent_logger.log_step(self.agent_id, entry.id, step.type.value, step.id, name=step.name)
        return True

    def finalize(
        self,
        entry: HistoryEntry,
        status: AgentStatus,
        output: Any = None,
        error: Optional[str] = None
    ) -> HistoryEntry:
        """Move a working entry to a terminal status, exactly once"""

        if status not in TERMINAL_STATUSES:
            raise HistoryStateError(f"'{status.value}' is not a terminal status")
        if entry.is_terminal:
            raise HistoryStateError(
                f"History entry '{entry.id}' is already finalized as '{entry.status.value}'"
            )

        entry.status = status
        entry.end_time = datetime.utcnow()
        if status == AgentStatus.COMPLETED:
            entry.output = output
        else:
            entry.error = error

        key = TimelineEventKey.AGENT_SUCCESS if status == AgentStatus.COMPLETED else TimelineEventKey.AGENT_ERROR
        self.event_bus.publish(key, self._entry_payload(entry), entry.id, self.agent_id)
        agent_logger.log_operation_event(
            "success" if status == AgentStatus.COMPLETED else "error",
            self.agent_id,
            entry.id,
            data={"steps": len(entry.steps), "error": error} if error else {"steps": len(entry.steps)}
        )
        self._propagate_to_parents(entry, created=False)
        return entry

    def get_entries(self) -> List[HistoryEntry]:
        """Entries in creation order"""
        return list(self.entries)

    def get_entry(self, entry_id: str) -> Optional[HistoryEntry]:
        return self._index.get(entry_id)

    def has_active_entries(self) -> bool:
        return any(entry.status == AgentStatus.WORKING for entry in self.entries)

    def _trim(self):
        if not self.max_entries or len(self.entries) <= self.max_entries:
            return

        # Only finished entries are evicted, oldest first
        overflow = len(self.entries) - self.max_entries
        for entry in [e for e in self.entries if e.is_terminal][:overflow]:
            self.entries.remove(entry)
            self._index.pop(entry.id, None)
            self._recorded_steps.pop(entry.id, None)

    def _entry_payload(self, entry: HistoryEntry) -> Dict[str, Any]:
        return EntryPayload(
            entry_id=entry.id,
            status=entry.status.value,
            input=entry.input,
            output=entry.output,
            error=entry.error,
            start_time=entry.start_time,
            end_time=entry.end_time,
            step_count=len(entry.steps),
            user_id=entry.user_id,
            conversation_id=entry.conversation_id
        ).model_dump()

    def _propagate_to_parents(self, entry: HistoryEntry, created: bool):
        if self.registry is None or not self.registry.get_parent_agent_ids(self.agent_id):
            return

        if created:
            self.event_bus.emit_hierarchical_history_entry_created(self.agent_id, entry, self.registry)
        else:
            self.event_bus.emit_hierarchical_history_update(self.agent_id, entry, self.registry)
