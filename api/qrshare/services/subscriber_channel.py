"""Per-observer delivery sinks for session events."""

import asyncio
from typing import Any, Protocol

CLIENT_QUEUE_MAXSIZE = 64

_CLOSED = object()


class ChannelClosedError(Exception):
    """Raised when a channel can no longer accept events."""

    pass


class ChannelFullError(ChannelClosedError):
    """Raised when a channel's buffer is full (observer not draining)."""

    pass


class SubscriberChannel(Protocol):
    def enqueue(self, event: Any) -> None: ...

    def close(self) -> None: ...


class QueueChannel:
    """asyncio.Queue-backed channel drained by one stream.

    enqueue() never blocks: a full buffer raises ChannelFullError so one slow
    observer cannot hold up a publisher. Once closed, nothing still buffered
    is handed to the reader.
    """

    def __init__(self, maxsize: int = CLIENT_QUEUE_MAXSIZE) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def enqueue(self, event: Any) -> None:
        if self._closed:
            raise ChannelClosedError("channel is closed")
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull as exc:
            raise ChannelFullError("channel buffer is full") from exc

    def close(self) -> None:
        if self._closed:
            raise ChannelClosedError("channel already closed")
        self._closed = True
        # Wake a pending receive(); make room if the buffer is full.
        while True:
            try:
                self._queue.put_nowait(_CLOSED)
                break
            except asyncio.QueueFull:
                self._queue.get_nowait()

    async def receive(self) -> Any | None:
        """Wait for the next event. Returns None once the channel is closed."""
        if self._closed:
            return None
        item = await self._queue.get()
        if item is _CLOSED or self._closed:
            return None
        return item
