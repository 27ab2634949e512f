from typing import Dict, List, Optional, TYPE_CHECKING
import structlog

from agentcore.domain.events.event_bus import AgentEventEmitter
from agentcore.domain.models.errors import AgentConfigurationError, DuplicateRegistrationError

if TYPE_CHECKING:
    from agentcore.domain.orchestration.core.main_agent import Agent

logger = structlog.get_logger(__name__)


class LocalAgentRegistry:
    """Tracks agents and parent/child relationships without any server"""

    def __init__(self, event_bus: Optional[AgentEventEmitter] = None):
        self.agents: Dict[str, "Agent"] = {}
        # child id -> parent ids
        self.agent_relationships: Dict[str, List[str]] = {}
        self._event_bus = event_bus

    @property
    def event_bus(self) -> AgentEventEmitter:
        return self._event_bus or AgentEventEmitter.get_instance()

    def register_agent(self, agent: "Agent"):
        """Register a new agent"""

        if agent is None:
            raise AgentConfigurationError("Agent cannot be None")
        if not agent.id or not str(agent.id).strip():
            raise AgentConfigurationError("Agent must have a valid ID")
        if agent.id in self.agents:
            raise DuplicateRegistrationError("Agent", agent.id)

        self.agents[agent.id] = agent
        logger.info("Agent registered", agent_id=agent.id, name=agent.name)
        self.event_bus.emit_agent_registered(agent.id)

    def get_agent(self, agent_id: str) -> Optional["Agent"]:
        return self.agents.get(agent_id)

    def get_all_agents(self) -> List["Agent"]:
        return list(self.agents.values())

    def get_agent_ids(self) -> List[str]:
        return list(self.agents.keys())

    def has_agent(self, agent_id: str) -> bool:
        return agent_id in self.agents

    def get_agent_count(self) -> int:
        return len(self.agents)

    def register_sub_agent(self, parent_id: str, child_id: str):
        """Record a parent -> child relationship"""

        parents = self.agent_relationships.setdefault(child_id, [])
        if parent_id not in parents:
            parents.append(parent_id)

    def unregister_sub_agent(self, parent_id: str, child_id: str):
        """Remove a parent -> child relationship"""

        parents = self.agent_relationships.get(child_id)
        if not parents:
            return
        if parent_id in parents:
            parents.remove(parent_id)
        if not parents:
            del self.agent_relationships[child_id]

    def get_parent_agent_ids(self, child_id: str) -> List[str]:
        return list(self.agent_relationships.get(child_id, []))

    def clear_agent_relationships(self, agent_id: str):
        """Drop every relationship the agent takes part in"""

        self.agent_relationships.pop(agent_id, None)

        for child_id in list(self.agent_relationships.keys()):
            parents = self.agent_relationships[child_id]
            if agent_id in parents:
                parents.remove(agent_id)
            if not parents:
                del self.agent_relationships[child_id]

    def remove_agent(self, agent_id: str) -> bool:
        """Remove an agent by ID"""

        if agent_id not in self.agents:
            return False

        del self.agents[agent_id]
        self.clear_agent_relationships(agent_id)
        logger.info("Agent removed", agent_id=agent_id)
        self.event_bus.emit_agent_unregistered(agent_id)
        return True

    def clear(self):
        self.agents.clear()
        self.agent_relationships.clear()
