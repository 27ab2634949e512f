from typing import Dict, Any, List, Optional, Callable, Set, TYPE_CHECKING
import asyncio
import inspect
import structlog

from agentcore.domain.events.schema.events import (
    TimelineEvent, TimelineEventKey, SubAgentPayload
)
from agentcore.domain.models.agent_state import AgentStatus, HistoryEntry

if TYPE_CHECKING:
    from agentcore.domain.registry.local_registry import LocalAgentRegistry

logger = structlog.get_logger(__name__)

Unsubscribe = Callable[[], None]


class AgentEventEmitter:
    """Process-wide publish/subscribe bus for timeline and registry events.

    Publishing never waits on subscribers: while an event loop is running each
    delivery is scheduled as its own task, so a slow subscriber cannot block the
    emitting operation. Subscribers may be plain callables or coroutine functions.
    """

    _instance: Optional["AgentEventEmitter"] = None

    def __init__(self):
        self.event_handlers: Dict[str, List[Callable]] = {
            "timeline": [],
            "agent_registered": [],
            "agent_unregistered": [],
        }
        self._pending: Set[asyncio.Task] = set()

    @classmethod
    def get_instance(cls) -> "AgentEventEmitter":
        """Get the process-wide emitter"""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Drop the process-wide emitter (tests)"""
        cls._instance = None

    # Subscriptions

    def on_timeline_event(self, handler: Callable[[TimelineEvent], Any]) -> Unsubscribe:
        return self._subscribe("timeline", handler)

    def on_agent_registered(self, handler: Callable[[str], Any]) -> Unsubscribe:
        return self._subscribe("agent_registered", handler)

    def on_agent_unregistered(self, handler: Callable[[str], Any]) -> Unsubscribe:
        return self._subscribe("agent_unregistered", handler)

    def _subscribe(self, event_type: str, handler: Callable) -> Unsubscribe:
        handlers = self.event_handlers[event_type]
        handlers.append(handler)

        def unsubscribe() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    # Publishing

    def publish(
        self,
        key: TimelineEventKey,
        payload: Dict[str, Any],
        history_id: Optional[str],
        agent_id: str
    ) -> TimelineEvent:
        """Build and publish a timeline event"""

        event = TimelineEvent(
            key=key,
            payload=payload,
            history_id=history_id,
            agent_id=agent_id
        )
        return self.publish_timeline_event(event)

    def publish_timeline_event(self, event: TimelineEvent) -> TimelineEvent:
        """Publish an already built timeline event"""

        logger.debug(
            "Publishing timeline event",
            key=event.key.value,
            agent_id=event.agent_id,
            history_id=event.history_id
        )
        self._dispatch("timeline", event)
        return event

    def emit_agent_registered(self, agent_id: str) -> None:
        self._dispatch("agent_registered", agent_id)
        self.publish(TimelineEventKey.AGENT_REGISTERED, {"agent_id": agent_id}, None, agent_id)

    def emit_agent_unregistered(self, agent_id: str) -> None:
        self._dispatch("agent_unregistered", agent_id)
        self.publish(TimelineEventKey.AGENT_UNREGISTERED, {"agent_id": agent_id}, None, agent_id)

    # Hierarchical propagation

    def emit_hierarchical_history_entry_created(
        self,
        agent_id: str,
        entry: HistoryEntry,
        registry: "LocalAgentRegistry"
    ) -> List[TimelineEvent]:
        """Propagate a sub-agent's entry creation to every ancestor agent"""

        return self._propagate(agent_id, entry, registry, TimelineEventKey.AGENT_START)

    def emit_hierarchical_history_update(
        self,
        agent_id: str,
        entry: HistoryEntry,
        registry: "LocalAgentRegistry"
    ) -> List[TimelineEvent]:
        """Propagate a sub-agent's terminal status to every ancestor agent"""

        if entry.status == AgentStatus.COMPLETED:
            key = TimelineEventKey.AGENT_SUCCESS
        elif entry.status == AgentStatus.ERROR:
            key = TimelineEventKey.AGENT_ERROR
        else:
            return []
        return self._propagate(agent_id, entry, registry, key)

    def _propagate(
        self,
        agent_id: str,
        entry: HistoryEntry,
        registry: "LocalAgentRegistry",
        key: TimelineEventKey
    ) -> List[TimelineEvent]:
        child = registry.get_agent(agent_id)
        payload = SubAgentPayload(
            id=agent_id,
            display_name=child.name if child is not None else agent_id,
            status=entry.status.value,
            entry_id=entry.id,
            input=entry.input,
            output=entry.output,
            error=entry.error
        ).model_dump()

        published: List[TimelineEvent] = []
        visited = {agent_id}
        frontier = [agent_id]

        while frontier:
            current = frontier.pop(0)
            for parent_id in registry.get_parent_agent_ids(current):
                # Cyclic relationships stop at the first revisit
                if parent_id in visited:
                    continue
                visited.add(parent_id)
                if registry.get_agent(parent_id) is None:
                    logger.warning("Parent agent not registered", parent_id=parent_id, child_id=agent_id)
                    continue
                published.append(
                    self.publish(key, dict(payload, agent_id=parent_id), entry.id, parent_id)
                )
                frontier.append(parent_id)

        return published

    # Delivery

    def _dispatch(self, event_type: str, *args: Any) -> None:
        handlers = list(self.event_handlers.get(event_type, []))
        if not handlers:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        for handler in handlers:
            if loop is not None:
                task = loop.create_task(self._deliver(event_type, handler, args))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)
            else:
                self._deliver_blocking(event_type, handler, args)

    async def _deliver(self, event_type: str, handler: Callable, args: tuple) -> None:
        try:
            result = handler(*args)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error("Error in event handler", event_type=event_type, error=str(e))

    def _deliver_blocking(self, event_type: str, handler: Callable, args: tuple) -> None:
        # Outside an event loop (e.g. agent construction in sync code)
        try:
            result = handler(*args)
            if inspect.isawaitable(result):
                asyncio.run(_await(result))
        except Exception as e:
            logger.error("Error in event handler", event_type=event_type, error=str(e))

    async def flush(self) -> None:
        """Wait until every scheduled delivery has run"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


async def _await(awaitable: Any) -> Any:
    return await awaitable
