"""
Server-sent events push channels.

A channel is opened by `GET /sse` and stays open until the peer disconnects
or `sse_max_duration` elapses, whichever comes first. Heartbeats and the
hard deadline are asyncio tasks owned by the channel; both are cancelled
whenever the channel closes, for any reason.
"""

from __future__ import annotations

import asyncio
import json
import time
import uuid
from typing import Any, AsyncIterator, Dict, List, Optional

from .logging_config import logger


def encode_sse(data: Any, *, event: Optional[str] = None) -> bytes:
    """
    Encode one SSE frame. Dict payloads are serialised as JSON.
    """
    text = data if isinstance(data, str) else json.dumps(data, ensure_ascii=False)
    lines: List[str] = []
    if event:
        lines.append(f"event: {event}")
    for line in text.splitlines() or [""]:
        lines.append(f"data: {line}")
    return ("\n".join(lines) + "\n\n").encode("utf-8")


async def single_event_stream(payload: Dict[str, Any]) -> AsyncIterator[bytes]:
    """
    Carry one RPC response as a single `message` event.
    """
    yield encode_sse(payload, event="message")


class PushChannel:
    def __init__(
        self,
        channel_id: str,
        session_id: Optional[str],
        *,
        heartbeat_interval: float,
        max_duration: float,
        hub: Optional["ChannelHub"] = None,
    ) -> None:
        self.channel_id = channel_id
        self.session_id = session_id
        self.heartbeat_interval = heartbeat_interval
        self.max_duration = max_duration
        self.opened_at = time.time()
        self._hub = hub
        self._queue: asyncio.Queue[Optional[bytes]] = asyncio.Queue()
        self._deadline_task: Optional[asyncio.Task] = None
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_tasks(self) -> List[asyncio.Task]:
        tasks = (self._deadline_task, self._heartbeat_task)
        return [t for t in tasks if t is not None and not t.done()]

    def arm(self) -> None:
        """
        Start the hard deadline. Called when the channel is opened, so a peer
        that never starts reading still gets its channel closed.
        """
        if self._deadline_task is None and not self._closed:
            self._deadline_task = asyncio.create_task(
                self._deadline(), name=f"sse-deadline-{self.channel_id}"
            )

    def _start_heartbeat(self) -> None:
        if self._heartbeat_task is None and not self._closed:
            self._heartbeat_task = asyncio.create_task(
                self._heartbeat(), name=f"sse-heartbeat-{self.channel_id}"
            )

    async def _heartbeat(self) -> None:
        while not self._closed:
            await asyncio.sleep(self.heartbeat_interval)
            self.send({"type": "ping", "timestamp": time.time()}, event="ping")

    async def _deadline(self) -> None:
        await asyncio.sleep(self.max_duration)
        logger.info(
            "Closing SSE channel %s after %.1fs limit", self.channel_id, self.max_duration
        )
        self.close()

    def send(self, payload: Dict[str, Any], *, event: str = "message") -> bool:
        """
        Queue one event; returns False when the channel is already closed.
        """
        if self._closed:
            return False
        self._queue.put_nowait(encode_sse(payload, event=event))
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)
        current = asyncio.current_task()
        for task in (self._deadline_task, self._heartbeat_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        if self._hub is not None:
            self._hub.discard(self.channel_id)

    async def stream(self, *initial: bytes) -> AsyncIterator[bytes]:
        """
        Yield SSE frames until the channel closes. Heartbeats start with the
        stream; all timers are torn down when the consumer stops iterating.
        """
        self.arm()
        self._start_heartbeat()
        try:
            for frame in initial:
                yield frame
            while True:
                frame = await self._queue.get()
                if frame is None:
                    break
                yield frame
        finally:
            # Covers peer disconnects too: the consumer cancels or closes us.
            self.close()
            logger.info(
                "SSE channel %s closed after %.1fs",
                self.channel_id,
                time.time() - self.opened_at,
            )


class ChannelHub:
    """
    Open push channels by id, so `POST /messages` can route a response to
    the stream that asked for it.
    """

    def __init__(self, *, heartbeat_interval: float, max_duration: float) -> None:
        self.heartbeat_interval = heartbeat_interval
        self.max_duration = max_duration
        self._channels: Dict[str, PushChannel] = {}

    def open(self, session_id: Optional[str]) -> PushChannel:
        channel = PushChannel(
            uuid.uuid4().hex,
            session_id,
            heartbeat_interval=self.heartbeat_interval,
            max_duration=self.max_duration,
            hub=self,
        )
        channel.arm()
        self._channels[channel.channel_id] = channel
        logger.info(
            "SSE channel %s opened (session=%s, active=%d)",
            channel.channel_id,
            session_id,
            len(self._channels),
        )
        return channel

    def get(self, channel_id: str) -> Optional[PushChannel]:
        return self._channels.get(channel_id)

    def discard(self, channel_id: str) -> None:
        self._channels.pop(channel_id, None)

    def __len__(self) -> int:
        return len(self._channels)

    def close_all(self) -> None:
        for channel in list(self._channels.values()):
            channel.close()
        self._channels.clear()


__all__ = ["ChannelHub", "PushChannel", "encode_sse", "single_event_stream"]
