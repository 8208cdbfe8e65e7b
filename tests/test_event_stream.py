import asyncio

import pytest

from core.errors import StreamClosedError, StreamTruncatedError
from models.events import AgentEvent
from services.event_stream import EventStream, collect_events, encode_event, parse_sse


async def _drain(stream, producer=None):
    return "".join([frame async for frame in stream.sse(producer)])


@pytest.mark.asyncio
async def test_events_arrive_in_order_and_end_with_terminal():
    async def producer(stream):
        for i in range(3):
            await stream.progress(f"s{i}", f"step {i}")
        await stream.complete("done", data={"n": 3})

    body = await _drain(EventStream(), producer)
    events = collect_events(body)

    assert [e.step for e in events] == ["s0", "s1", "s2", "complete"]
    assert events[-1].type == "complete"
    assert events[-1].data == {"n": 3}


@pytest.mark.asyncio
async def test_emit_after_terminal_raises():
    stream = EventStream()
    await stream.fail("bad input", step="validation")
    with pytest.raises(StreamClosedError):
        await stream.progress("late", "too late")
    with pytest.raises(StreamClosedError):
        await stream.complete("again")

    events = [e async for e in stream]
    assert len(events) == 1
    assert events[0].type == "error"
    assert events[0].step == "validation"


@pytest.mark.asyncio
async def test_producer_exception_becomes_error_event():
    async def producer(stream):
        await stream.progress("fetch", "Fetching...")
        raise RuntimeError("provider exploded")

    events = collect_events(await _drain(EventStream(), producer))
    assert events[-1].type == "error"
    assert events[-1].message == "provider exploded"
    assert sum(1 for e in events if e.is_terminal) == 1


@pytest.mark.asyncio
async def test_producer_without_terminal_gets_one():
    async def producer(stream):
        await stream.progress("only", "progress")

    events = collect_events(await _drain(EventStream(), producer))
    assert events[-1].type == "error"
    assert events[-1].message == "Stream ended without a result"


@pytest.mark.asyncio
async def test_consumer_disconnect_stops_producer():
    emitted = []
    blocked = asyncio.Event()

    async def producer(stream):
        for i in range(1000):
            await stream.progress("tick", str(i))
            emitted.append(i)
            if i == 1:
                blocked.set()
            await asyncio.sleep(0)

    stream = EventStream()
    frames = stream.sse(producer)
    first = await frames.__anext__()
    assert first.startswith("data: ")
    await blocked.wait()
    await frames.aclose()

    assert stream.closed
    with pytest.raises(StreamClosedError):
        await stream.progress("tick", "after close")
    assert len(emitted) < 1000


def test_frame_format():
    frame = encode_event(AgentEvent.progress("init", "Starting..."))
    assert frame.startswith('data: {"type":"progress","step":"init","message":"Starting..."')
    assert frame.endswith("\n\n")
    assert '"data"' not in frame


def test_parse_skips_malformed_blocks():
    good = encode_event(AgentEvent.progress("a", "one"))
    body = good + "data: {not json}\n\n" + ": comment\n\n" + encode_event(AgentEvent.complete("done"))
    events = parse_sse(body)
    assert [e.type for e in events] == ["progress", "complete"]


def test_collect_events_requires_terminal():
    body = encode_event(AgentEvent.progress("a", "one"))
    with pytest.raises(StreamTruncatedError):
        collect_events(body)


def test_collect_events_rejects_events_after_terminal():
    body = encode_event(AgentEvent.complete("done")) + encode_event(AgentEvent.progress("a", "late"))
    with pytest.raises(StreamTruncatedError):
        collect_events(body)
