from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
import asyncio
import json
import structlog

from agentcore.domain.history.history_manager import HistoryManager
from agentcore.domain.hooks.hook_dispatcher import HookDispatcher
from agentcore.domain.models.agent_state import (
    AgentStatus, Message, OperationContext, Step, StepType, ToolExecutionContext
)
from agentcore.domain.streaming.streaming_handler import StreamObjectResult, StreamTextResult
from agentcore.domain.tool.tool_registry import Tool
from .base_provider import (
    LLMProvider, ProviderObjectResponse, ProviderTextResponse, StepCallback
)

logger = structlog.get_logger(__name__)

StepRecorded = Callable[[Step, OperationContext], Awaitable[None]]


class ProviderInvocationAdapter:
    """Uniform front over the four generation modes.

    The provider runs the tool loop; this adapter only guarantees that every step
    it surfaces is recorded once and in order, forwarded to on_step_finish and
    published on the timeline, and that the operation settles exactly once.
    """

    def __init__(
        self,
        agent_id: str,
        llm: LLMProvider,
        history: HistoryManager,
        hooks: HookDispatcher,
        model: Any = None,
        on_step_recorded: Optional[StepRecorded] = None,
        agent: Any = None
    ):
        self.agent_id = agent_id
        self.llm = llm
        self.model = model
        self.history = history
        self.hooks = hooks
        self.on_step_recorded = on_step_recorded
        self.agent = agent

    # Entry points

    async def generate_text(
        self,
        messages: List[Message],
        context: OperationContext,
        tools: Optional[List[Tool]] = None,
        max_steps: Optional[int] = None
    ) -> ProviderTextResponse:
        try:
            response = await self.llm.generate_text(
                messages=messages,
                model=self.model,
                tools=tools or None,
                max_steps=max_steps,
                on_step_finish=self.step_callback(context),
                tool_execution_context=self._tool_context(context) if tools else None,
            )
        except (Exception, asyncio.CancelledError) as e:
            await self.settle_failure(context, e)
            raise

        await self.settle_success(context, response.text)
        return response

    async def stream_text(
        self,
        messages: List[Message],
        context: OperationContext,
        tools: Optional[List[Tool]] = None,
        max_steps: Optional[int] = None
    ) -> StreamTextResult:
        try:
            response = await self.llm.stream_text(
                messages=messages,
                model=self.model,
                tools=tools or None,
                max_steps=max_steps,
                on_step_finish=self.step_callback(context),
                tool_execution_context=self._tool_context(context),
            )
        except (Exception, asyncio.CancelledError) as e:
            await self.settle_failure(context, e)
            raise

        return StreamTextResult(
            response.text_stream,
            on_complete=lambda output: self.settle_success(context, output),
            on_error=lambda error: self.settle_failure(context, error),
            provider=response.provider
        )

    async def generate_object(
        self,
        messages: List[Message],
        schema: Any,
        context: OperationContext
    ) -> ProviderObjectResponse:
        try:
            response = await self.llm.generate_object(
                messages=messages,
                schema=schema,
                model=self.model,
                on_step_finish=self.step_callback(context),
            )
        except (Exception, asyncio.CancelledError) as e:
            await self.settle_failure(context, e)
            raise

        await self.settle_success(context, response.object)
        return response

    async def stream_object(
        self,
        messages: List[Message],
        schema: Any,
        context: OperationContext
    ) -> StreamObjectResult:
        try:
            response = await self.llm.stream_object(
                messages=messages,
                schema=schema,
                model=self.model,
                on_step_finish=self.step_callback(context),
                tool_execution_context=self._tool_context(context),
            )
        except (Exception, asyncio.CancelledError) as e:
            await self.settle_failure(context, e)
            raise

        return StreamObjectResult(
            response.object_stream,
            on_complete=lambda output: self.settle_success(context, output),
            on_error=lambda error: self.settle_failure(context, error),
            provider=response.provider
        )

    # Step recording

    def step_callback(self, context: OperationContext) -> StepCallback:
        """Build the per-operation on_step_finish passed to the provider"""

        # Serializes concurrent callbacks; asyncio.Lock wakes waiters in FIFO order
        lock = asyncio.Lock()

        async def on_step_finish(step: Union[Step, Dict[str, Any]]) -> None:
            async with lock:
                await self.record_step(context, step)

        return on_step_finish

    async def record_step(self, context: OperationContext, step: Union[Step, Dict[str, Any]]) -> bool:
        step = step if isinstance(step, Step) else Step.model_validate(step)
        entry = context.history_entry

        if entry.is_terminal:
            logger.warning(
                "Step arrived after operation settled",
                agent_id=self.agent_id,
                history_id=entry.id,
                step_id=step.id
            )
            return False

        if not self.history.add_step(entry, step):
            return False

        context.steps.append(step)
        await self.hooks.step_finish(step, context)
        if self.on_step_recorded is not None:
            await self.on_step_recorded(step, context)
        return True

    # Settlement

    async def settle_success(self, context: OperationContext, output: Any) -> None:
        entry = context.history_entry
        if entry.is_terminal:
            return

        self._check_tool_pairs(context)
        if not entry.steps or entry.steps[-1].type != StepType.TEXT:
            # Providers that report no steps still end on a text step
            final_step = Step.text_step(content=_as_text(output))
            if self.history.add_step(entry, final_step):
                context.steps.append(final_step)
                if self.on_step_recorded is not None:
                    await self.on_step_recorded(final_step, context)

        self.history.finalize(entry, AgentStatus.COMPLETED, output=output)
        await self.hooks.end(context, output=output)

    async def settle_failure(self, context: OperationContext, error: BaseException) -> None:
        entry = context.history_entry
        if not entry.is_terminal:
            self.history.finalize(entry, AgentStatus.ERROR, error=str(error) or type(error).__name__)

        logger.error(
            "Operation failed",
            agent_id=self.agent_id,
            history_id=entry.id,
            operation_id=context.operation_id,
            error=str(error),
            error_type=type(error).__name__
        )
        try:
            await self.hooks.end(context, error=error)
        except Exception as hook_error:
            # Strict on_end failures must not mask the operation error
            logger.warning(
                "on_end failed while settling an error",
                agent_id=self.agent_id,
                operation_id=context.operation_id,
                hook_error=str(hook_error)
            )

    def _tool_context(self, context: OperationContext) -> ToolExecutionContext:
        return ToolExecutionContext(
            operation_context=context,
            agent_id=self.agent_id,
            history_entry_id=context.history_entry.id,
            agent=self.agent
        )

    def _check_tool_pairs(self, context: OperationContext) -> None:
        results = {s.id for s in context.history_entry.steps if s.type == StepType.TOOL_RESULT}
        for step in context.history_entry.steps:
            if step.type == StepType.TOOL_CALL and step.id not in results:
                logger.warning(
                    "Tool call without result",
                    agent_id=self.agent_id,
                    history_id=context.history_entry.id,
                    tool=step.name,
                    step_id=step.id
                )


def _as_text(output: Any) -> str:
    if isinstance(output, str):
        return output
    if hasattr(output, "model_dump_json"):
        return output.model_dump_json()
    try:
        return json.dumps(output, default=str)
    except (TypeError, ValueError):
        return str(output)
