from typing import Any, Callable, Optional, TYPE_CHECKING
from dataclasses import dataclass
import inspect
import structlog

from agentcore.domain.models.agent_state import OperationContext, Step
from agentcore.infrastructure.observability.logging import agent_logger

if TYPE_CHECKING:
    from agentcore.domain.orchestration.core.main_agent import Agent

logger = structlog.get_logger(__name__)


@dataclass
class AgentHooks:
    """Optional lifecycle callbacks; each may be sync or async.

    on_start(agent=, context=)
    on_step_finish(agent=, step=, context=)
    on_end(agent=, output=, error=, context=, conversation_id=)
    """
    on_start: Optional[Callable[..., Any]] = None
    on_step_finish: Optional[Callable[..., Any]] = None
    on_end: Optional[Callable[..., Any]] = None


def create_hooks(
    on_start: Optional[Callable[..., Any]] = None,
    on_step_finish: Optional[Callable[..., Any]] = None,
    on_end: Optional[Callable[..., Any]] = None
) -> AgentHooks:
    return AgentHooks(on_start=on_start, on_step_finish=on_step_finish, on_end=on_end)


class HookDispatcher:
    """Invokes lifecycle hooks in order, containing their failures"""

    def __init__(self, agent: "Agent", hooks: Optional[AgentHooks] = None, strict: bool = False):
        self.agent = agent
        self.hooks = hooks or AgentHooks()
        self.strict = strict

    async def start(self, context: OperationContext) -> None:
        await self._invoke("on_start", agent=self.agent, context=context)

    async def step_finish(self, step: Step, context: OperationContext) -> None:
        await self._invoke("on_step_finish", agent=self.agent, step=step, context=context)

    async def end(
        self,
        context: OperationContext,
        output: Any = None,
        error: Optional[BaseException] = None
    ) -> None:
        """Fire on_end once per operation; later calls are ignored"""

        if not context.is_active:
            logger.warning("on_end already dispatched", operation_id=context.operation_id)
            return
        context.is_active = False

        await self._invoke(
            "on_end",
            agent=self.agent,
            output=None if error is not None else output,
            error=error,
            context=context,
            conversation_id=context.conversation_id
        )

    async def _invoke(self, hook_name: str, **kwargs: Any) -> None:
        hook = getattr(self.hooks, hook_name)
        if hook is None:
            return

        try:
            result = hook(**kwargs)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            agent_logger.log_hook_failure(hook_name, self.agent.id, e, operation_id=kwargs["context"].operation_id)
            if self.strict:
                raise
