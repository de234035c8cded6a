import asyncio
import json

import pytest

from tourbooking.routes.events import _event_stream
from tourbooking.stores.event_bus import CLOSED_EVENT, EventBus, event_bus


@pytest.mark.anyio
async def test_events_without_listeners_are_dropped():
    bus = EventBus()
    for remaining in range(50, 0, -1):
        await bus.publish("d1", {"type": "otp.countdown", "remaining_seconds": remaining})

    assert bus.listener_count("d1") == 0
    queue = bus.subscribe("d1")
    await bus.publish("d1", {"type": "otp.sent"})

    assert queue.qsize() == 1
    assert queue.get_nowait() == {"type": "otp.sent"}


@pytest.mark.anyio
async def test_slow_listener_keeps_newest_events():
    bus = EventBus(max_pending=3)
    queue = bus.subscribe("d1")

    for remaining in range(5, 0, -1):
        await bus.publish("d1", {"type": "otp.countdown", "remaining_seconds": remaining})

    received = [queue.get_nowait()["remaining_seconds"] for _ in range(queue.qsize())]
    assert received == [3, 2, 1]


@pytest.mark.anyio
async def test_every_listener_receives_events_until_close():
    bus = EventBus()
    received = {"a": [], "b": []}

    async def listen(name):
        async for event in bus.stream("d1"):
            received[name].append(event["type"])

    listeners = [asyncio.create_task(listen("a")), asyncio.create_task(listen("b"))]
    await asyncio.sleep(0)

    await bus.publish("d1", {"type": "otp.sent"})
    await bus.publish("d2", {"type": "otp.sent"})
    await bus.close("d1")
    await asyncio.wait_for(asyncio.gather(*listeners), timeout=1)

    assert received == {"a": ["otp.sent", CLOSED_EVENT], "b": ["otp.sent", CLOSED_EVENT]}
    assert bus.listener_count("d1") == 0


@pytest.mark.anyio
async def test_cancelled_listener_unsubscribes():
    bus = EventBus()

    async def listen():
        async for _ in bus.stream("d1"):
            pass

    task = asyncio.create_task(listen())
    await asyncio.sleep(0)
    assert bus.listener_count("d1") == 1
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert bus.listener_count("d1") == 0


@pytest.mark.anyio
async def test_sse_stream_starts_with_status_then_named_events():

    frames = []

    async def listen():
        async for frame in _event_stream("sse-1", {"type": "status", "status": "editing"}):
            frames.append(frame)

    task = asyncio.create_task(listen())
    for _ in range(3):
        await asyncio.sleep(0)
    assert event_bus.listener_count("sse-1") == 1

    await event_bus.publish("sse-1", {"type": "otp.countdown", "remaining_seconds": 4})
    await event_bus.close("sse-1")
    await asyncio.wait_for(task, timeout=1)

    assert [frame["event"] for frame in frames] == ["status", "otp.countdown", CLOSED_EVENT]
    assert json.loads(frames[0]["data"]) == {"type": "status", "status": "editing"}
    assert json.loads(frames[1]["data"])["remaining_seconds"] == 4
