"""Pytest fixtures for agentcore tests."""

import asyncio
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest
from pydantic import BaseModel

from agentcore.domain.context.context_retriever import BaseRetriever
from agentcore.domain.context.memory.base_memory import BaseMemory
from agentcore.domain.events.event_bus import AgentEventEmitter
from agentcore.domain.models.agent_state import Message, Step
from agentcore.domain.orchestration.core.main_agent import Agent
from agentcore.domain.provider.base_provider import (
    LLMProvider, ProviderObjectResponse, ProviderObjectStreamResponse,
    ProviderTextResponse, ProviderTextStreamResponse
)
from agentcore.domain.tool.tool_registry import Tool
from agentcore.infrastructure.config.settings import AgentSettings


class MockProvider(LLMProvider):
    """Scripted provider covering the four generation modes.

    `steps` are reported through on_step_finish before returning. `tool_calls`
    are (id, name, args) triples that are executed against the tools passed in,
    each producing a tool_call and a tool_result step before the final text.
    """

    def __init__(
        self,
        text: str = "Hello from mock",
        steps: Sequence[Any] = (),
        tool_calls: Sequence[Tuple[str, str, Dict[str, Any]]] = (),
        error: Optional[BaseException] = None,
        chunks: Sequence[str] = ("Hello", " ", "world"),
        stream_error: Optional[str] = None,
        object_value: Any = None,
        partials: Sequence[Any] = (),
        delay: float = 0
    ):
        self.text = text
        self.steps = list(steps)
        self.tool_calls = list(tool_calls)
        self.error = error
        self.chunks = list(chunks)
        self.stream_error = stream_error
        self.object_value = object_value if object_value is not None else {"name": "Alice"}
        self.partials = list(partials)
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    async def _report(self, on_step_finish, tools, tool_execution_context):
        for tool_id, name, args in self.tool_calls:
            await on_step_finish(Step.tool_call(id=tool_id, name=name, arguments=args))
            tool = next(t for t in tools or [] if t.name == name)
            result = await tool.run(args, tool_execution_context)
            await on_step_finish(Step.tool_result(id=tool_id, name=name, result=result))

        for step in self.steps:
            await on_step_finish(step)

    async def generate_text(self, messages, model=None, tools=None, max_steps=None,
                            on_step_finish=None, tool_execution_context=None):
        self.calls.append(dict(
            mode="generate_text", messages=messages, tools=tools, max_steps=max_steps,
            tool_execution_context=tool_execution_context
        ))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

        await self._report(on_step_finish, tools, tool_execution_context)
        return ProviderTextResponse(text=self.text, provider="mock")

    async def stream_text(self, messages, model=None, tools=None, max_steps=None,
                          on_step_finish=None, tool_execution_context=None):
        self.calls.append(dict(
            mode="stream_text", messages=messages, tools=tools, max_steps=max_steps,
            tool_execution_context=tool_execution_context
        ))
        if self.error is not None:
            raise self.error

        async def text_stream():
            for chunk in self.chunks:
                yield chunk
            if self.stream_error:
                raise Exception(self.stream_error)
            await on_step_finish(Step.text_step("".join(self.chunks)))

        return ProviderTextStreamResponse(text_stream=text_stream(), provider="mock")

    async def generate_object(self, messages, schema, model=None, on_step_finish=None,
                              tool_execution_context=None):
        self.calls.append(dict(
            mode="generate_object", messages=messages, schema=schema,
            tool_execution_context=tool_execution_context
        ))
        if self.error is not None:
            raise self.error

        await self._report(on_step_finish, None, tool_execution_context)
        return ProviderObjectResponse(object=self.object_value, provider="mock")

    async def stream_object(self, messages, schema, model=None, on_step_finish=None,
                            tool_execution_context=None):
        self.calls.append(dict(
            mode="stream_object", messages=messages, schema=schema,
            tool_execution_context=tool_execution_context
        ))
        if self.error is not None:
            raise self.error

        async def object_stream():
            for partial in self.partials:
                yield partial
            if self.stream_error:
                raise Exception(self.stream_error)

        return ProviderObjectStreamResponse(object_stream=object_stream(), provider="mock")


class RecordingMemory(BaseMemory):
    """Memory double that records reads and writes"""

    def __init__(self, messages: Sequence[Message] = (), fail_reads: bool = False,
                 fail_writes: bool = False, over_deliver: bool = False):
        self.messages = list(messages)
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.over_deliver = over_deliver
        self.get_calls: List[Dict[str, Any]] = []
        self.added: List[Message] = []

    async def get_messages(self, user_id, conversation_id=None, limit=10):
        self.get_calls.append({"user_id": user_id, "conversation_id": conversation_id, "limit": limit})
        if self.fail_reads:
            raise ConnectionError("memory store unavailable")
        if self.over_deliver:
            return list(self.messages)
        return list(self.messages)[-limit:] if limit > 0 else []

    async def add_message(self, message, user_id, conversation_id=None):
        if self.fail_writes:
            raise ConnectionError("memory store unavailable")
        self.added.append(message)


class StaticRetriever(BaseRetriever):
    """Retriever returning fixed text and recording its queries"""

    def __init__(self, text: str = "Paris is the capital of France.", error: Optional[BaseException] = None,
                 references: Optional[List[str]] = None):
        super().__init__()
        self.text = text
        self.error = error
        self.references = references
        self.queries: List[str] = []

    async def retrieve(self, text, user_context=None):
        self.queries.append(text)
        if self.error is not None:
            raise self.error
        if self.references is not None and user_context is not None:
            user_context["references"] = self.references
        return self.text


class WeatherParams(BaseModel):
    city: str
    unit: str = "c"


def make_weather_tool(execute=None) -> Tool:
    async def get_weather(args: WeatherParams, context):
        return {"city": args.city, "temperature": 21, "unit": args.unit}

    return Tool(
        name="get_weather",
        description="Get the current weather for a city",
        parameters=WeatherParams,
        execute=execute or get_weather
    )


@pytest.fixture(autouse=True)
def event_bus():
    """Fresh process-wide event bus for every test"""
    AgentEventEmitter.reset_instance()
    bus = AgentEventEmitter.get_instance()
    yield bus
    AgentEventEmitter.reset_instance()


@pytest.fixture
def settings() -> AgentSettings:
    return AgentSettings()


@pytest.fixture
def provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def make_agent(settings):
    """Factory for agents with test defaults"""

    def _make(llm: Optional[LLMProvider] = None, **kwargs) -> Agent:
        kwargs.setdefault("name", "TestAgent")
        kwargs.setdefault("instructions", "You are a helpful assistant")
        kwargs.setdefault("settings", settings)
        return Agent(llm=llm or MockProvider(), **kwargs)

    return _make


@pytest.fixture
def timeline(event_bus):
    """Collects every timeline event published during a test"""
    events = []
    event_bus.on_timeline_event(events.append)
    return events
