from typing import Dict, Any, List, TYPE_CHECKING
from datetime import datetime

from agentcore.domain.models.errors import AgentConfigurationError, DuplicateRegistrationError

if TYPE_CHECKING:
    from agentcore.domain.orchestration.core.main_agent import Agent


class SubAgentManager:
    """Keeps the sub-agents of one parent agent"""

    def __init__(self, parent: "Agent"):
        self.parent = parent
        self.sub_agents: Dict[str, "Agent"] = {}
        self.added_at: Dict[str, datetime] = {}

    def add_sub_agent(self, agent: "Agent"):
        """Add a sub-agent and link it in the parent's registry"""

        if agent is self.parent or agent.id == self.parent.id:
            raise AgentConfigurationError("An agent cannot be its own sub-agent")
        if agent.id in self.sub_agents:
            raise DuplicateRegistrationError("Sub-agent", agent.id)

        self.sub_agents[agent.id] = agent
        self.added_at[agent.id] = datetime.utcnow()

        if self.parent.registry is not None:
            self.parent.registry.register_sub_agent(self.parent.id, agent.id)

    def remove_sub_agent(self, agent_id: str) -> bool:
        if agent_id not in self.sub_agents:
            return False

        del self.sub_agents[agent_id]
        self.added_at.pop(agent_id, None)
        if self.parent.registry is not None:
            self.parent.registry.unregister_sub_agent(self.parent.id, agent_id)
        return True

    def get_sub_agents(self) -> List["Agent"]:
        return list(self.sub_agents.values())

    def get_info(self) -> List[Dict[str, Any]]:
        """Get sub-agent information for state snapshots"""
        return [
            {
                "id": agent.id,
                "name": agent.name,
                "description": agent.instructions,
                "node_id": f"agent_{agent.id}",
                "added_at": self.added_at[agent.id].isoformat()
            }
            for agent in self.sub_agents.values()
        ]
