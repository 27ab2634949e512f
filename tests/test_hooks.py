"""Tests for lifecycle hook dispatch."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from structlog.testing import capture_logs

from agentcore.domain.hooks.hook_dispatcher import AgentHooks, HookDispatcher, create_hooks
from agentcore.domain.models.agent_state import AgentStatus, Step, StepType
from agentcore.infrastructure.config.settings import AgentSettings
from conftest import MockProvider, make_weather_tool


class RecordingHooks:
    def __init__(self):
        self.calls = []
        self.ends = []

    def on_start(self, agent, context):
        self.calls.append("start")

    async def on_step_finish(self, agent, step, context):
        self.calls.append(f"step:{step.type.value}")

    def on_end(self, agent, output, error, context, conversation_id):
        self.calls.append("end")
        self.ends.append({"output": output, "error": error, "conversation_id": conversation_id})

    def build(self) -> AgentHooks:
        return create_hooks(on_start=self.on_start, on_step_finish=self.on_step_finish, on_end=self.on_end)


class TestOnEnd:
    @pytest.mark.asyncio
    async def test_fires_once_with_output_on_success(self, make_agent):
        hooks = RecordingHooks()
        agent = make_agent(MockProvider(text="done"), hooks=hooks.build())

        await agent.generate_text("Hello", conversation_id="conv-9")

        assert len(hooks.ends) == 1
        assert hooks.ends[0]["output"] == "done"
        assert hooks.ends[0]["error"] is None
        assert hooks.ends[0]["conversation_id"] == "conv-9"

    @pytest.mark.asyncio
    async def test_fires_once_with_error_on_failure(self, make_agent):
        hooks = RecordingHooks()
        error = RuntimeError("provider exploded")
        agent = make_agent(MockProvider(error=error), hooks=hooks.build())

        with pytest.raises(RuntimeError):
            await agent.generate_text("Hello")

        assert len(hooks.ends) == 1
        assert hooks.ends[0]["output"] is None
        assert hooks.ends[0]["error"] is error

    @pytest.mark.asyncio
    async def test_fires_once_for_streams(self, make_agent):
        hooks = RecordingHooks()
        agent = make_agent(MockProvider(), hooks=hooks.build())

        result = await agent.stream_text("Hello")
        await result.text()

        assert hooks.calls.count("end") == 1
        assert hooks.ends[0]["output"] == "Hello world"

    @pytest.mark.asyncio
    async def test_dispatcher_ignores_second_end(self, make_agent):
        on_end = MagicMock(return_value=None)
        agent = make_agent(MockProvider(), hooks=create_hooks(on_end=on_end))
        captured = []
        agent.hook_dispatcher.hooks.on_start = lambda agent, context: captured.append(context)

        await agent.generate_text("Hello")
        await agent.hook_dispatcher.end(captured[0], output="again")

        on_end.assert_called_once()


class TestHookOrder:
    @pytest.mark.asyncio
    async def test_start_steps_end(self, make_agent):
        hooks = RecordingHooks()
        provider = MockProvider(
            tool_calls=[("call-1", "get_weather", {"city": "Paris"})],
            steps=[Step.text_step("It is 21 degrees in Paris")]
        )
        agent = make_agent(provider, tools=[make_weather_tool()], hooks=hooks.build())

        await agent.generate_text("Weather in Paris?")

        assert hooks.calls == ["start", "step:tool_call", "step:tool_result", "step:text", "end"]

    @pytest.mark.asyncio
    async def test_synthesized_final_step_is_not_forwarded(self, make_agent):
        hooks = RecordingHooks()
        agent = make_agent(MockProvider(text="plain answer"), hooks=hooks.build())

        await agent.generate_text("Hello")

        assert hooks.calls == ["start", "end"]
        entry = agent.get_history()[0]
        assert entry.steps[-1].type == StepType.TEXT
        assert entry.steps[-1].content == "plain answer"

    @pytest.mark.asyncio
    async def test_async_hooks_are_awaited(self, make_agent):
        on_start = AsyncMock()
        on_end = AsyncMock()
        agent = make_agent(MockProvider(), hooks=create_hooks(on_start=on_start, on_end=on_end))

        await agent.generate_text("Hello")

        on_start.assert_awaited_once()
        on_end.assert_awaited_once()
        assert on_start.await_args.kwargs["agent"] is agent


class TestHookFailures:
    @pytest.mark.asyncio
    async def test_failing_hooks_are_logged_and_skipped(self, make_agent):
        hooks = RecordingHooks()

        def broken_start(agent, context):
            raise ValueError("bad hook")

        def broken_step(agent, step, context):
            raise ValueError("bad step hook")

        agent = make_agent(
            MockProvider(text="still fine", steps=[Step.text_step("still fine")]),
            hooks=create_hooks(on_start=broken_start, on_step_finish=broken_step, on_end=hooks.on_end)
        )

        with capture_logs() as logs:
            response = await agent.generate_text("Hello")

        assert response.text == "still fine"
        assert len(hooks.ends) == 1
        assert hooks.ends[0]["output"] == "still fine"
        assert hooks.ends[0]["error"] is None
        assert agent.get_history()[0].status == AgentStatus.COMPLETED

        failures = [log for log in logs if log["event"] == "hook_failed"]
        assert [f["hook"] for f in failures] == ["on_start", "on_step_finish"]
        assert all(f["log_level"] == "error" for f in failures)

    @pytest.mark.asyncio
    async def test_failing_on_end_does_not_break_result(self, make_agent):
        def broken_end(**kwargs):
            raise RuntimeError("end failed")

        agent = make_agent(MockProvider(), hooks=create_hooks(on_end=broken_end))

        response = await agent.generate_text("Hello")

        assert response.text == "Hello from mock"
        assert agent.get_history()[0].status == AgentStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_strict_hooks_reraise(self, make_agent):
        def broken_start(agent, context):
            raise ValueError("bad hook")

        on_end = MagicMock(return_value=None)
        agent = make_agent(
            MockProvider(),
            hooks=create_hooks(on_start=broken_start, on_end=on_end),
            settings=AgentSettings(strict_hooks=True)
        )

        with pytest.raises(ValueError, match="bad hook"):
            await agent.generate_text("Hello")

        entry = agent.get_history()[0]
        assert entry.status == AgentStatus.ERROR
        assert entry.error == "bad hook"
        on_end.assert_called_once()
        assert isinstance(on_end.call_args.kwargs["error"], ValueError)


class TestHookDispatcher:
    @pytest.mark.asyncio
    async def test_missing_hooks_are_noops(self, make_agent):
        from agentcore.domain.context.operation_context import OperationContextFactory
        from agentcore.domain.models.agent_state import HistoryEntry

        dispatcher = HookDispatcher(make_agent(MockProvider()))
        context = OperationContextFactory().create(HistoryEntry(input="Hello"))

        await dispatcher.start(context)
        await dispatcher.step_finish(Step.text_step("x"), context)
        await dispatcher.end(context, output="x")

        assert context.is_active is False

    @pytest.mark.asyncio
    async def test_end_drops_output_when_error_is_set(self, make_agent):
        from agentcore.domain.context.operation_context import OperationContextFactory
        from agentcore.domain.models.agent_state import HistoryEntry

        on_end = MagicMock(return_value=None)
        dispatcher = HookDispatcher(make_agent(MockProvider()), create_hooks(on_end=on_end))
        context = OperationContextFactory().create(HistoryEntry(input="Hello"))

        await dispatcher.end(context, output="partial", error=RuntimeError("boom"))

        assert on_end.call_args.kwargs["output"] is None
        assert str(on_end.call_args.kwargs["error"]) == "boom"


class TestOnEndContext:
    @pytest.mark.asyncio
    async def test_operations_run_without_hooks(self, make_agent):
        agent = make_agent(MockProvider(text="done", steps=[Step.text_step("done")]))

        response = await agent.generate_text("Hello")
        result = await agent.stream_text("Hello")
        await result.text()

        assert response.text == "done"
        assert [e.status for e in agent.get_history()] == [AgentStatus.COMPLETED, AgentStatus.COMPLETED]
        assert agent.get_history()[0].steps[0].content == "done"

    @pytest.mark.asyncio
    async def test_on_end_receives_operation_context(self, make_agent):
        on_start = MagicMock(return_value=None)
        on_step_finish = MagicMock(return_value=None)
        on_end = MagicMock(return_value=None)
        agent = make_agent(
            MockProvider(steps=[Step.text_step("Hello from mock")]),
            hooks=create_hooks(on_start=on_start, on_step_finish=on_step_finish, on_end=on_end)
        )

        await agent.generate_text("Hello", conversation_id="conv-1")

        context = on_end.call_args.kwargs["context"]
        assert context is on_start.call_args.kwargs["context"]
        assert context is on_step_finish.call_args.kwargs["context"]
        assert context.history_entry is agent.get_history()[0]
        assert on_end.call_args.kwargs["conversation_id"] == "conv-1"

    @pytest.mark.asyncio
    async def test_dispatcher_passes_context_to_on_end(self, make_agent):
        from agentcore.domain.context.operation_context import OperationContextFactory
        from agentcore.domain.models.agent_state import HistoryEntry

        on_end = MagicMock(return_value=None)
        dispatcher = HookDispatcher(make_agent(MockProvider()), create_hooks(on_end=on_end))
        context = OperationContextFactory().create(HistoryEntry(input="Hello"))

        await dispatcher.end(context, output="x")

        assert on_end.call_args.kwargs["context"] is context
        assert on_end.call_args.kwargs["output"] == "x"


class TestStrictOnEnd:
    @pytest.mark.asyncio
    async def test_provider_error_wins_over_failing_on_end(self, make_agent):
        def broken_end(**kwargs):
            raise ValueError("end failed")

        error = RuntimeError("rate limited")
        agent = make_agent(
            MockProvider(error=error),
            hooks=create_hooks(on_end=broken_end),
            settings=AgentSettings(strict_hooks=True)
        )

        with capture_logs() as logs:
            with pytest.raises(RuntimeError) as exc_info:
                await agent.generate_text("Hello")

        assert exc_info.value is error
        entry = agent.get_history()[0]
        assert entry.status == AgentStatus.ERROR
        assert entry.error == "rate limited"
        assert [log["hook"] for log in logs if log["event"] == "hook_failed"] == ["on_end"]
