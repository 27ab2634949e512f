from typing import Any, Dict, Hashable, Iterable, List, Mapping, Optional, Tuple
import asyncio
import uuid
import structlog
from structlog.contextvars import bound_contextvars

from agentcore.domain.context.context_retriever import BaseRetriever, ContextRetriever
from agentcore.domain.context.memory.base_memory import BaseMemory
from agentcore.domain.context.message_assembler import (
    MessageAssembler, OperationInput, input_to_text, normalize_input
)
from agentcore.domain.context.operation_context import OperationContextFactory
from agentcore.domain.events.event_bus import AgentEventEmitter
from agentcore.domain.history.history_manager import HistoryManager
from agentcore.domain.hooks.hook_dispatcher import AgentHooks, HookDispatcher
from agentcore.domain.models.agent_state import (
    AgentStatus, HistoryEntry, Message, MessageRole, OperationContext, Step, StepType
)
from agentcore.domain.models.errors import AgentConfigurationError
from agentcore.domain.orchestration.subagent.sub_agent_manager import SubAgentManager
from agentcore.domain.provider.base_provider import (
    LLMProvider, ProviderObjectResponse, ProviderTextResponse
)
from agentcore.domain.provider.invocation import ProviderInvocationAdapter
from agentcore.domain.registry.local_registry import LocalAgentRegistry
from agentcore.domain.streaming.streaming_handler import StreamObjectResult, StreamTextResult
from agentcore.domain.tool.tool_registry import Tool, ToolManager
from agentcore.infrastructure.config.settings import AgentSettings, get_settings
from agentcore.infrastructure.observability.logging import agent_logger

logger = structlog.get_logger(__name__)


class Agent:
    """Turns one invocation into an orchestrated, observable operation.

    Each call to an entry point gets its own OperationContext and HistoryEntry,
    so several operations may run concurrently on the same agent. Flow:
    entry created -> retriever (best effort) -> messages assembled -> on_start ->
    provider with step callback -> entry finalized -> on_end.
    """

    def __init__(
        self,
        name: str,
        llm: LLMProvider,
        instructions: Optional[str] = None,
        description: Optional[str] = None,
        id: Optional[str] = None,
        model: Any = None,
        tools: Iterable[Tool] = (),
        memory: Optional[BaseMemory] = None,
        retriever: Optional[BaseRetriever] = None,
        hooks: Optional[AgentHooks] = None,
        sub_agents: Iterable["Agent"] = (),
        registry: Optional[LocalAgentRegistry] = None,
        event_bus: Optional[AgentEventEmitter] = None,
        settings: Optional[AgentSettings] = None
    ):
        if not name or not str(name).strip():
            raise AgentConfigurationError("Agent name is required")
        if llm is None:
            raise AgentConfigurationError(f"Agent '{name}' requires an llm provider")
        if not (instructions or description):
            raise AgentConfigurationError(f"Agent '{name}' requires instructions or a description")

        self.id = id or str(uuid.uuid4())
        self.name = name
        self.instructions = instructions or description
        # description mirrors the effective instructions
        self.description = self.instructions
        self.llm = llm
        self.model = model
        self.memory = memory
        self.retriever = retriever
        self.registry = registry
        self.settings = settings or get_settings()
        self.event_bus = event_bus or (registry.event_bus if registry is not None else AgentEventEmitter.get_instance())

        self.tool_manager = ToolManager(tools)
        self.history_manager = HistoryManager(
            self.id,
            event_bus=self.event_bus,
            registry=registry,
            max_entries=self.settings.max_history_entries
        )
        self.hook_dispatcher = HookDispatcher(self, hooks, strict=self.settings.strict_hooks)
        self.context_factory = OperationContextFactory()
        self.context_retriever = ContextRetriever(retriever, self.id)
        self.message_assembler = MessageAssembler(memory, self.id)
        self.invocation = ProviderInvocationAdapter(
            self.id,
            llm,
            self.history_manager,
            self.hook_dispatcher,
            model=model,
            on_step_recorded=self._remember_step,
            agent=self
        )

        self.sub_agent_manager = SubAgentManager(self)
        try:
            for sub_agent in sub_agents:
                self.sub_agent_manager.add_sub_agent(sub_agent)
            # A rejected configuration is never registered
            if registry is not None:
                registry.register_agent(self)
        except AgentConfigurationError:
            if registry is not None:
                for child_id in self.sub_agent_manager.sub_agents:
                    registry.unregister_sub_agent(self.id, child_id)
            raise

        logger.info(
            "Agent created",
            agent_id=self.id,
            name=self.name,
            tools=len(self.tool_manager.tools),
            sub_agents=len(self.sub_agent_manager.sub_agents)
        )

    @property
    def hooks(self) -> AgentHooks:
        return self.hook_dispatcher.hooks

    # Tools

    def add_tool(self, tool: Tool):
        self.tool_manager.register_tool(tool)

    def add_items(self, tools: Iterable[Tool]):
        for tool in tools:
            self.add_tool(tool)

    def get_tools(self) -> List[Tool]:
        return self.tool_manager.get_tools()

    def get_model_name(self) -> str:
        return self.llm.get_model_identifier(self.model)

    # Generation entry points

    async def generate_text(
        self,
        input: OperationInput,
        *,
        user_id: Optional[str] = None,
        conversation_id: Optional[str] = None,
        context_limit: Optional[int] = None,
        user_context: Optional[Mapping[Hashable, Any]] = None,
        max_steps: Optional[int] = None
    ) -> ProviderTextResponse:
        """Generate text, letting the provider run tools in between"""

        with bound_contextvars(agent_id=self.id):
            context, messages = await self._prepare_operation(
                input, user_id, conversation_id, context_limit, user_context
            )
            return await self.invocation.generate_text(
                messages, context, tools=self.tool_manager.get_tools(), max_steps=max_steps
            )

    async def stream_text(
        self,
        input: OperationInput,
        *,
        user_id: Optional[str] = None,
        conversation_id: Optional[str] = None,
        context_limit: Optional[int] = None,
        user_context: Optional[Mapping[Hashable, Any]] = None,
        max_steps: Optional[int] = None
    ) -> StreamTextResult:
        """Stream text; the operation settles when the stream is exhausted"""

        with bound_contextvars(agent_id=self.id):
            context, messages = await self._prepare_operation(
                input, user_id, conversation_id, context_limit, user_context
            )
            return await self.invocation.stream_text(
                messages, context, tools=self.tool_manager.get_tools(), max_steps=max_steps
            )

    async def generate_object(
        self,
        input: OperationInput,
        schema: Any,
        *,
        user_id: Optional[str] = None,
        conversation_id: Optional[str] = None,
        context_limit: Optional[int] = None,
        user_context: Optional[Mapping[Hashable, Any]] = None
    ) -> ProviderObjectResponse:
        """Generate an object matching `schema`"""

        with bound_contextvars(agent_id=self.id):
            context, messages = await self._prepare_operation(
                input, user_id, conversation_id, context_limit, user_context
            )
            return await self.invocation.generate_object(messages, schema, context)

    async def stream_object(
        self,
        input: OperationInput,
        schema: Any,
        *,
        user_id: Optional[str] = None,
        conversation_id: Optional[str] = None,
        context_limit: Optional[int] = None,
        user_context: Optional[Mapping[Hashable, Any]] = None
    ) -> StreamObjectResult:
        """Stream partial objects; the last one is the operation output"""

        with bound_contextvars(agent_id=self.id):
            context, messages = await self._prepare_operation(
                input, user_id, conversation_id, context_limit, user_context
            )
            return await self.invocation.stream_object(messages, schema, context)

    async def _prepare_operation(
        self,
        input: OperationInput,
        user_id: Optional[str],
        conversation_id: Optional[str],
        context_limit: Optional[int],
        user_context: Optional[Mapping[Hashable, Any]]
    ) -> Tuple[OperationContext, List[Message]]:
        input_messages = normalize_input(input)
        conversation_id = conversation_id or str(uuid.uuid4())
        limit = self.settings.context_limit if context_limit is None else context_limit

        entry, start_event = self.history_manager.add_entry(
            input=input if isinstance(input, str) else [m.model_dump() for m in input_messages],
            user_id=user_id,
            conversation_id=conversation_id
        )
        context = self.context_factory.create(
            entry,
            seed_user_context=user_context,
            start_event_id=start_event.id,
            conversation_id=conversation_id,
            user_id=user_id
        )

        try:
            retrieved = await self.context_retriever.retrieve_relevant_context(
                input_to_text(input), context.user_context
            )
            prior_messages = await self.message_assembler.fetch_prior_messages(
                user_id, conversation_id, limit
            )
            messages = self.message_assembler.assemble(
                self.instructions, retrieved, prior_messages, input_messages
            )
            for message in input_messages:
                await self._remember(message, context)

            await self.hook_dispatcher.start(context)
        except (Exception, asyncio.CancelledError) as e:
            await self.invocation.settle_failure(context, e)
            raise

        return context, messages

    # Memory write-back

    async def _remember(self, message: Message, context: OperationContext):
        if self.memory is None or not context.user_id:
            return

        try:
            await self.memory.add_message(message, user_id=context.user_id, conversation_id=context.conversation_id)
        except Exception as e:
            agent_logger.log_collaborator_failure("memory", self.id, e, user_id=context.user_id)

    async def _remember_step(self, step: Step, context: OperationContext):
        await self._remember(_step_to_message(step), context)

    # Observability surface

    def get_history(self) -> List[HistoryEntry]:
        return self.history_manager.get_entries()

    def get_history_manager(self) -> HistoryManager:
        return self.history_manager

    def get_full_state(self) -> Dict[str, Any]:
        """Snapshot of the agent and its sub-resources for graph rendering"""

        return {
            "id": self.id,
            "name": self.name,
            "description": self.instructions,
            "status": (AgentStatus.WORKING if self.history_manager.has_active_entries() else AgentStatus.IDLE).value,
            "model": self.get_model_name(),
            "node_id": f"agent_{self.id}",
            "tools": [
                dict(tool.get_info(), node_id=f"tool_{tool.name}_{self.id}")
                for tool in self.tool_manager.get_tools()
            ],
            "sub_agents": self.sub_agent_manager.get_info(),
            "memory": {
                "type": self.memory.memory_type,
                "node_id": f"memory_{self.id}"
            } if self.memory is not None else None,
            "retriever": {
                "name": self.retriever.name,
                "description": self.retriever.description,
                "node_id": f"retriever_{self.retriever.name}_{self.id}"
            } if self.retriever is not None else None,
        }

    def __repr__(self) -> str:
        return f"Agent(id={self.id!r}, name={self.name!r})"


def _step_to_message(step: Step) -> Message:
    if step.type == StepType.TOOL_CALL:
        return Message(
            role=MessageRole.ASSISTANT,
            content=[{"type": "tool-call", "tool_call_id": step.id, "tool_name": step.name, "args": step.arguments}]
        )
    if step.type == StepType.TOOL_RESULT:
        return Message(
            role=MessageRole.TOOL,
            content=[{"type": "tool-result", "tool_call_id": step.id, "tool_name": step.name, "result": step.result}]
        )
    return Message(role=step.role, content=step.content)
