from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional
import asyncio
import structlog

from agentcore.domain.models.errors import StreamClosedError

logger = structlog.get_logger(__name__)

CompleteCallback = Callable[[Any], Awaitable[None]]
ErrorCallback = Callable[[BaseException], Awaitable[None]]


async def _iterate(source: Any) -> AsyncIterator[Any]:
    if hasattr(source, "__aiter__"):
        async for item in source:
            yield item
    else:
        for item in source:
            yield item


class StreamingHandler:
    """Wraps a provider stream so the operation settles when the stream does.

    Exhausting the stream completes the operation with the collected output; an
    exception from the provider's stream settles it as an error and is re-raised
    unchanged to the consumer. Closing the stream early settles it as an error
    with StreamClosedError. The underlying provider call is not cancelled.
    """

    def __init__(
        self,
        source: Any,
        on_complete: CompleteCallback,
        on_error: ErrorCallback,
        provider: Any = None
    ):
        self.provider = provider
        self._source = source
        self._on_complete = on_complete
        self._on_error = on_error
        self._buffer: List[Any] = []
        self._stream = self._run()

    def _collect(self, buffer: List[Any]) -> Any:
        raise NotImplementedError

    async def _run(self) -> AsyncIterator[Any]:
        try:
            async for item in _iterate(self._source):
                self._buffer.append(item)
                yield item
        except GeneratorExit:
            logger.warning("Stream closed before completion", received=len(self._buffer))
            await self._on_error(StreamClosedError("Stream closed before completion"))
            raise
        except (Exception, asyncio.CancelledError) as e:
            await self._on_error(e)
            raise

        await self._on_complete(self._collect(self._buffer))

    def __aiter__(self) -> AsyncIterator[Any]:
        return self._stream

    async def aclose(self) -> None:
        await self._stream.aclose()


class StreamTextResult(StreamingHandler):
    """Caller-facing text stream; iterate `text_stream` (or the result itself)"""

    @property
    def text_stream(self) -> AsyncIterator[str]:
        return self._stream

    def _collect(self, buffer: List[Any]) -> str:
        return "".join(str(chunk) for chunk in buffer)

    async def text(self) -> str:
        """Consume the whole stream and return the joined text"""
        async for _ in self._stream:
            pass
        return self._collect(self._buffer)


class StreamObjectResult(StreamingHandler):
    """Caller-facing partial-object stream; the last partial is the final object"""

    @property
    def object_stream(self) -> AsyncIterator[Any]:
        return self._stream

    def _collect(self, buffer: List[Any]) -> Optional[Any]:
        return buffer[-1] if buffer else None

    async def object(self) -> Optional[Any]:
        """Consume the whole stream and return the final object"""
        async for _ in self._stream:
            pass
        return self._collect(self._buffer)
