import asyncio
import json

import pytest

from ghl_gateway.sse import ChannelHub, encode_sse


def _events(frames):
    events = []
    for frame in frames:
        text = frame.decode()
        event = None
        data = []
        for line in text.strip().splitlines():
            if line.startswith("event: "):
                event = line[len("event: "):]
            elif line.startswith("data: "):
                data.append(line[len("data: "):])
        events.append((event, "\n".join(data)))
    return events


def test_encode_sse_frames_json_and_text():
    assert encode_sse({"a": 1}, event="message") == b'event: message\ndata: {"a": 1}\n\n'
    assert encode_sse("/messages?channel_id=x", event="endpoint") == (
        b"event: endpoint\ndata: /messages?channel_id=x\n\n"
    )
    assert encode_sse("one\ntwo") == b"data: one\ndata: two\n\n"


@pytest.mark.asyncio
async def test_channel_heartbeats_then_closes_at_deadline():
    hub = ChannelHub(heartbeat_interval=0.02, max_duration=0.15)
    channel = hub.open("T1")
    assert hub.get(channel.channel_id) is channel

    frames = []
    async for frame in channel.stream(encode_sse("hello", event="endpoint")):
        frames.append(frame)

    events = _events(frames)
    assert events[0] == ("endpoint", "hello")
    assert any(name == "ping" for name, _ in events[1:])
    assert channel.closed
    assert len(hub) == 0

    await asyncio.sleep(0.01)
    assert channel.pending_tasks == []


@pytest.mark.asyncio
async def test_sent_messages_are_streamed():
    hub = ChannelHub(heartbeat_interval=10, max_duration=10)
    channel = hub.open(None)
    stream = channel.stream()

    assert channel.send({"jsonrpc": "2.0", "id": 1, "result": {}})
    frame = await asyncio.wait_for(stream.__anext__(), timeout=1)
    name, data = _events([frame])[0]
    assert name == "message"
    assert json.loads(data)["id"] == 1

    await stream.aclose()


@pytest.mark.asyncio
async def test_consumer_going_away_cancels_timers():
    hub = ChannelHub(heartbeat_interval=10, max_duration=10)
    channel = hub.open("T1")
    stream = channel.stream(encode_sse("hello", event="endpoint"))

    await stream.__anext__()
    tasks = list(channel.pending_tasks)
    assert len(tasks) == 2

    await stream.aclose()
    await asyncio.gather(*tasks, return_exceptions=True)

    assert all(task.cancelled() for task in tasks)
    assert channel.closed
    assert hub.get(channel.channel_id) is None
    assert channel.send({"late": True}) is False


@pytest.mark.asyncio
async def test_close_all_ends_open_streams():
    hub = ChannelHub(heartbeat_interval=10, max_duration=10)
    channel = hub.open("T1")

    async def consume():
        return [frame async for frame in channel.stream()]

    consumer = asyncio.create_task(consume())
    await asyncio.sleep(0.01)
    hub.close_all()

    assert await asyncio.wait_for(consumer, timeout=1) == []
    assert len(hub) == 0


@pytest.mark.asyncio
async def test_channel_never_streamed_still_closes_at_deadline():
    hub = ChannelHub(heartbeat_interval=10, max_duration=0.05)
    channel = hub.open("T1")
    assert len(channel.pending_tasks) == 1

    await asyncio.sleep(0.15)

    assert channel.closed
    assert hub.get(channel.channel_id) is None
    assert channel.pending_tasks == []
