"""In-memory session registry: one latest value per session, fanned out to its observers.

Each session has its own lock guarding its value and subscriber set. The
registry lock only guards insertion into and removal from the session map,
so unrelated sessions never contend. No critical section awaits, which
keeps the locks usable from both the event loop and the threadpool.
"""

import logging
import threading
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from qrshare.services.events import value_event
from qrshare.services.session_id import generate_session_id
from qrshare.services.subscriber_channel import ChannelClosedError, SubscriberChannel

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 5


class SessionNotFoundError(LookupError):
    """Raised when a session id is unknown, expired or deleted."""

    pass


class BlankTextError(ValueError):
    """Raised when submitted text is missing or whitespace only."""

    pass


class SessionCreateError(RuntimeError):
    """Raised when no unused session id could be generated."""

    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(eq=False)
class Session:
    id: str
    created_at: datetime
    current_value: str | None = None
    subscribers: set[SubscriberChannel] = field(default_factory=set)
    closed: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def has_value(self) -> bool:
        return bool(self.current_value)

    @property
    def subscriber_count(self) -> int:
        return len(self.subscribers)


class SessionRegistry:
    def __init__(
        self,
        id_generator: Callable[[], str] = generate_session_id,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._id_generator = id_generator
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    @property
    def subscriber_count(self) -> int:
        return sum(s.subscriber_count for s in list(self._sessions.values()))

    def create_session(self) -> str:
        """Insert a new empty session and return its id."""
        for _ in range(MAX_ID_ATTEMPTS):
            session_id = self._id_generator()
            with self._lock:
                if session_id in self._sessions:
                    logger.warning("Session id collision, regenerating")
                    continue
                self._sessions[session_id] = Session(
                    id=session_id, created_at=self._clock()
                )
            logger.info("Created session %s", session_id)
            return session_id
        raise SessionCreateError(
            f"Could not generate an unused session id in {MAX_ID_ATTEMPTS} attempts"
        )

    def get_session(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def publish(self, session_id: str, text: str | None) -> int:
        """Store text as the session's value and push it to every subscriber.

        Returns the number of subscribers the value was delivered to.
        Subscribers that fail to accept it are closed and dropped.

        Raises:
            SessionNotFoundError: no live session has this id.
            BlankTextError: text is None or blank after stripping.
        """
        session = self._require(session_id)
        text = (text or "").strip()
        if not text:
            raise BlankTextError("Text cannot be empty")

        event = value_event(text)
        with session.lock:
            if session.closed:
                raise SessionNotFoundError(session_id)
            session.current_value = text
            delivered = 0
            for channel in list(session.subscribers):
                try:
                    channel.enqueue(event)
                    delivered += 1
                except ChannelClosedError as exc:
                    logger.warning(
                        "Dropping subscriber of session %s: %s", session_id, exc
                    )
                    session.subscribers.discard(channel)
                    with suppress(ChannelClosedError):
                        channel.close()
        return delivered

    def subscribe(self, session_id: str, channel: SubscriberChannel) -> Session:
        """Register channel for the session's updates.

        The current value, if any, is replayed into the channel first, under
        the same lock as publish, so no update can slip in between.
        """
        session = self._require(session_id)
        with session.lock:
            if session.closed:
                raise SessionNotFoundError(session_id)
            if session.current_value:
                channel.enqueue(value_event(session.current_value))
            session.subscribers.add(channel)
        return session

    def unsubscribe(self, session_id: str, channel: SubscriberChannel) -> None:
        session = self._sessions.get(session_id)
        if session is None:
            return
        with session.lock:
            session.subscribers.discard(channel)

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        self._evict(session)
        return True

    def sweep_expired(self, max_age: timedelta, now: datetime | None = None) -> int:
        """Evict sessions at least max_age old, closing their subscribers."""
        now = now or self._clock()
        with self._lock:
            expired = [
                s for s in self._sessions.values() if now - s.created_at >= max_age
            ]
            for session in expired:
                del self._sessions[session.id]
        for session in expired:
            self._evict(session)
        return len(expired)

    def close(self) -> None:
        """Evict every session. Called on shutdown."""
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            self._evict(session)

    def _require(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    @staticmethod
    def _evict(session: Session) -> None:
        with session.lock:
            session.closed = True
            channels = list(session.subscribers)
            session.subscribers.clear()
        for channel in channels:
            with suppress(ChannelClosedError):
                channel.close()
        logger.debug(
            "Evicted session %s (%d subscribers closed)", session.id, len(channels)
        )
