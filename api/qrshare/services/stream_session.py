"""One observer's connection to a session, from connect to disconnect."""

import asyncio
import enum
import logging
from collections.abc import AsyncIterator
from contextlib import suppress

from qrshare.services.events import KEEPALIVE, Keepalive, connected_event
from qrshare.services.session_registry import SessionNotFoundError, SessionRegistry
from qrshare.services.subscriber_channel import (
    CLIENT_QUEUE_MAXSIZE,
    ChannelClosedError,
    QueueChannel,
)

logger = logging.getLogger(__name__)

KEEPALIVE_INTERVAL_SECONDS = 15


class StreamOpenError(RuntimeError):
    """Raised when the initial events do not fit the observer's buffer."""

    pass


class StreamState(enum.Enum):
    CONNECTING = "connecting"
    STREAMING = "streaming"
    CLOSED = "closed"


class StreamSession:
    """Drives a single observer: snapshot, live updates, keepalive, teardown.

    Usage:
        stream = StreamSession(registry, session_id)
        stream.open()               # raises SessionNotFoundError, StreamOpenError
        async for item in stream.events():
            ...                     # dict events or KEEPALIVE

    A StreamSession is never reopened; a reconnecting observer gets a new one.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        session_id: str,
        keepalive_seconds: float = KEEPALIVE_INTERVAL_SECONDS,
        queue_maxsize: int = CLIENT_QUEUE_MAXSIZE,
    ) -> None:
        if queue_maxsize < 2:
            raise ValueError("queue_maxsize must hold the connected event and snapshot")
        self.session_id = session_id
        self.state = StreamState.CONNECTING
        self._registry = registry
        self._keepalive_seconds = keepalive_seconds
        self._channel = QueueChannel(maxsize=queue_maxsize)

    @property
    def channel(self) -> QueueChannel:
        return self._channel

    def open(self) -> None:
        """Emit the connected event and the current value, then subscribe."""
        if self.state is not StreamState.CONNECTING:
            raise RuntimeError(f"Cannot open a stream in state {self.state.value}")

        if self._registry.get_session(self.session_id) is None:
            self.state = StreamState.CLOSED
            raise SessionNotFoundError(self.session_id)

        try:
            self._channel.enqueue(connected_event(self.session_id))
            self._registry.subscribe(self.session_id, self._channel)
        except SessionNotFoundError:
            self.close()
            raise
        except ChannelClosedError as exc:
            self.close()
            raise StreamOpenError(
                f"Could not queue initial events for session {self.session_id}"
            ) from exc

        self.state = StreamState.STREAMING
        logger.debug("Stream opened for session %s", self.session_id)

    async def events(self) -> AsyncIterator[dict | Keepalive]:
        """Yield events as they arrive, and KEEPALIVE on idle intervals.

        Ends when the channel is closed (session evicted or observer dropped).
        Whatever ends the iteration, including cancellation, closes the stream.
        """
        if self.state is not StreamState.STREAMING:
            return

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._keepalive_seconds
        try:
            while True:
                timeout = max(deadline - loop.time(), 0)
                try:
                    event = await asyncio.wait_for(
                        self._channel.receive(), timeout=timeout
                    )
                except asyncio.TimeoutError:
                    deadline = loop.time() + self._keepalive_seconds
                    yield KEEPALIVE
                    continue
                if event is None:
                    break
                yield event
        finally:
            self.close()

    def close(self) -> None:
        if self.state is StreamState.CLOSED:
            return
        self.state = StreamState.CLOSED
        self._registry.unsubscribe(self.session_id, self._channel)
        with suppress(ChannelClosedError):
            self._channel.close()
        logger.debug("Stream closed for session %s", self.session_id)

    async def aclose(self) -> None:
        self.close()
