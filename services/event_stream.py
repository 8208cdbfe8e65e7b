"""
Event stream emitter.

An EventStream is a single-use channel between one producer (the plan
executor or a route-level orchestration script) and one consumer (the HTTP
response). Events come out in emission order; exactly one terminal event
(complete or error) ends the stream.

Wire format (server-sent events):

    data: {"type": "progress", "step": "...", "message": "...", "timestamp": 1700000000000}\n\n

Producer side:
    stream = EventStream()
    await stream.emit(AgentEvent.progress("init", "Starting..."))
    await stream.complete("Done", data=result)

Consumer side:
    async for frame in stream.sse(): ...
"""
import asyncio
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, List, Optional

from core.errors import StreamClosedError, StreamTruncatedError
from models.events import AgentEvent

logger = logging.getLogger(__name__)

SSE_PREFIX = "data: "

_END = object()


def encode_event(event: AgentEvent) -> str:
    return f"{SSE_PREFIX}{event.model_dump_json(exclude_none=True)}\n\n"


class EventStream:
    def __init__(self, name: str = "stream"):
        self.name = name
        self._queue: asyncio.Queue = asyncio.Queue()
        self._finished = False
        self._disconnected = False

    @property
    def closed(self) -> bool:
        return self._finished or self._disconnected

    async def emit(self, event: AgentEvent):
        if self._disconnected:
            raise StreamClosedError(f"{self.name}: consumer disconnected")
        if self._finished:
            raise StreamClosedError(f"{self.name}: stream already terminated")
        await self._queue.put(event)
        if event.is_terminal:
            self._finished = True
            await self._queue.put(_END)

    async def progress(self, step: str, message: str, data: Any = None):
        await self.emit(AgentEvent.progress(step, message, data))

    async def complete(self, message: str, data: Any = None):
        await self.emit(AgentEvent.complete(message, data))

    async def fail(self, message: str, step: str = "error"):
        await self.emit(AgentEvent.error(message, step=step))

    def close(self):
        """Consumer side went away; the producer's next emit raises."""
        if not self._disconnected:
            logger.info("[%s] consumer disconnected", self.name)
        self._disconnected = True

    async def run(self, producer: Callable[["EventStream"], Awaitable[None]]):
        """
        Drive `producer(stream)` and guarantee a terminal event.

        A producer exception becomes an error event; a producer that returns
        without finishing gets a synthetic error event.
        """
        try:
            await producer(self)
        except StreamClosedError:
            logger.info("[%s] producer stopped: stream closed", self.name)
            return
        except Exception as e:
            logger.exception("[%s] producer failed", self.name)
            if not self.closed:
                await self.fail(str(e) or type(e).__name__)
            return
        if not self.closed:
            logger.error("[%s] producer returned without a terminal event", self.name)
            await self.fail("Stream ended without a result")

    def __aiter__(self) -> AsyncIterator[AgentEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[AgentEvent]:
        while True:
            item = await self._queue.get()
            if item is _END:
                return
            yield item

    async def sse(self, producer: Optional[Callable[["EventStream"], Awaitable[None]]] = None) -> AsyncIterator[str]:
        """
        Yield SSE frames. When `producer` is given it runs as a task alongside
        the reader; if the reader is abandoned the stream is closed and the
        task cancelled.
        """
        task = asyncio.create_task(self.run(producer)) if producer is not None else None
        try:
            async for event in self:
                yield encode_event(event)
        finally:
            if not self._finished:
                self.close()
            if task is not None and not task.done():
                task.cancel()


# ---------------------- consumer helpers ---------------------- #

def parse_sse(text: str) -> List[AgentEvent]:
    """Parse a full SSE body. Malformed blocks are logged and skipped."""
    return list(iter_sse_events(text.splitlines()))


def iter_sse_events(lines: Iterable[str]) -> Iterable[AgentEvent]:
    for line in lines:
        line = line.strip()
        if not line.startswith(SSE_PREFIX.strip()):
            continue
        payload = line[len(SSE_PREFIX.strip()):].strip()
        if not payload:
            continue
        try:
            event = AgentEvent.model_validate(json.loads(payload))
        except ValueError as e:
            logger.warning("Skipping malformed SSE block: %s (%s)", payload[:200], e)
            continue
        yield event


def collect_events(text: str) -> List[AgentEvent]:
    """Like parse_sse but requires the stream to end with exactly one terminal event."""
    events = parse_sse(text)
    terminals = [i for i, e in enumerate(events) if e.is_terminal]
    if not terminals:
        raise StreamTruncatedError("Stream closed without a terminal event")
    if len(terminals) > 1 or terminals[0] != len(events) - 1:
        raise StreamTruncatedError("Events found after the terminal event")
    return events
