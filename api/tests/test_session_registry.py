"""Tests for the session registry: publish, subscribe, expiry."""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from qrshare.services.events import value_event
from qrshare.services.session_id import is_valid_session_id
from qrshare.services.session_registry import (
    BlankTextError,
    SessionCreateError,
    SessionNotFoundError,
    SessionRegistry,
)
from qrshare.services.subscriber_channel import ChannelClosedError, QueueChannel


class RecordingChannel:
    def __init__(self):
        self.events = []
        self.closed = False

    def enqueue(self, event):
        if self.closed:
            raise ChannelClosedError("closed")
        self.events.append(event)

    def close(self):
        if self.closed:
            raise ChannelClosedError("closed")
        self.closed = True


class FailingChannel:
    def __init__(self):
        self.attempts = 0
        self.closed = False

    def enqueue(self, event):
        self.attempts += 1
        raise ChannelClosedError("connection gone")

    def close(self):
        self.closed = True


def test_create_session_starts_empty(registry):
    session_id = registry.create_session()

    session = registry.get_session(session_id)
    assert session is not None
    assert is_valid_session_id(session_id)
    assert session.current_value is None
    assert session.has_value is False
    assert session.subscriber_count == 0
    assert session.created_at.tzinfo is not None


def test_get_unknown_session_returns_none(registry):
    assert registry.get_session("doesnotexist") is None


def test_create_session_retries_on_collision():
    ids = iter(["abc1234567", "abc1234567", "xyz7654321"])
    registry = SessionRegistry(id_generator=lambda: next(ids))

    assert registry.create_session() == "abc1234567"
    assert registry.create_session() == "xyz7654321"
    assert registry.session_count == 2


def test_create_session_gives_up_after_repeated_collisions(fixed_id_registry):
    fixed_id_registry.create_session()

    with pytest.raises(SessionCreateError):
        fixed_id_registry.create_session()


def test_publish_without_subscribers_updates_value(registry):
    session_id = registry.create_session()

    delivered = registry.publish(session_id, "hello")

    assert delivered == 0
    channel = RecordingChannel()
    registry.subscribe(session_id, channel)
    assert channel.events == [value_event("hello")]


def test_late_subscriber_sees_only_last_value(registry):
    session_id = registry.create_session()
    for text in ("one", "two", "three"):
        registry.publish(session_id, text)

    channel = RecordingChannel()
    registry.subscribe(session_id, channel)

    assert channel.events == [value_event("three")]


def test_publish_stores_stripped_text(registry):
    session_id = registry.create_session()

    registry.publish(session_id, "  hello  \n")

    assert registry.get_session(session_id).current_value == "hello"


@pytest.mark.parametrize("text", ["", "   ", "\n\t", None])
def test_blank_publish_is_rejected_without_mutation(registry, text):
    session_id = registry.create_session()
    registry.publish(session_id, "kept")

    with pytest.raises(BlankTextError):
        registry.publish(session_id, text)

    assert registry.get_session(session_id).current_value == "kept"


def test_publish_to_unknown_session_raises(registry):
    with pytest.raises(SessionNotFoundError):
        registry.publish("doesnotexist", "hello")


def test_blank_publish_to_unknown_session_raises_not_found(registry):
    with pytest.raises(SessionNotFoundError):
        registry.publish("doesnotexist", "   ")


def test_publish_delivers_to_every_subscriber(registry):
    session_id = registry.create_session()
    first, second = RecordingChannel(), RecordingChannel()
    registry.subscribe(session_id, first)
    registry.subscribe(session_id, second)

    delivered = registry.publish(session_id, "hello")

    assert delivered == 2
    assert first.events == [value_event("hello")]
    assert second.events == [value_event("hello")]


def test_failing_subscriber_is_attempted_once_then_dropped(registry):
    session_id = registry.create_session()
    failing = FailingChannel()
    healthy = RecordingChannel()
    registry.subscribe(session_id, failing)
    registry.subscribe(session_id, healthy)

    registry.publish(session_id, "first")
    registry.publish(session_id, "second")

    assert failing.attempts == 1
    assert failing.closed
    assert healthy.events == [value_event("first"), value_event("second")]
    assert registry.get_session(session_id).subscriber_count == 1


async def test_full_queue_subscriber_is_dropped(registry):
    session_id = registry.create_session()
    slow = QueueChannel(maxsize=1)
    registry.subscribe(session_id, slow)

    registry.publish(session_id, "fits")
    delivered = registry.publish(session_id, "overflows")

    assert delivered == 0
    assert slow.closed
    assert registry.get_session(session_id).subscriber_count == 0


def test_subscribe_to_unknown_session_raises(registry):
    channel = RecordingChannel()

    with pytest.raises(SessionNotFoundError):
        registry.subscribe("doesnotexist", channel)
    assert channel.events == []


def test_unsubscribe_is_idempotent(registry):
    session_id = registry.create_session()
    channel = RecordingChannel()
    registry.subscribe(session_id, channel)

    registry.unsubscribe(session_id, channel)
    registry.unsubscribe(session_id, channel)
    registry.unsubscribe("doesnotexist", channel)

    registry.publish(session_id, "hello")
    assert channel.events == []


def test_concurrent_publishes_are_last_write_wins(registry):
    session_id = registry.create_session()
    first, second = RecordingChannel(), RecordingChannel()
    registry.subscribe(session_id, first)
    registry.subscribe(session_id, second)
    texts = [f"value-{i}" for i in range(200)]

    with ThreadPoolExecutor(max_workers=8) as executor:
        list(executor.map(lambda t: registry.publish(session_id, t), texts))

    assert len(first.events) == len(texts)
    assert first.events == second.events
    assert registry.get_session(session_id).current_value == first.events[-1]["text"]


def test_delete_session_closes_subscribers(registry):
    session_id = registry.create_session()
    channel = RecordingChannel()
    registry.subscribe(session_id, channel)

    assert registry.delete_session(session_id) is True
    assert registry.delete_session(session_id) is False
    assert channel.closed
    assert registry.get_session(session_id) is None


def test_sweep_with_zero_max_age_evicts_everything(registry):
    ids = [registry.create_session() for _ in range(3)]
    channel = RecordingChannel()
    registry.subscribe(ids[0], channel)

    evicted = registry.sweep_expired(timedelta(0))

    assert evicted == 3
    assert registry.session_count == 0
    assert channel.closed


def test_sweep_keeps_young_sessions():
    now = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
    clock_values = iter(
        [now - timedelta(minutes=90), now - timedelta(minutes=10)]
    )
    registry = SessionRegistry(clock=lambda: next(clock_values))
    old_id = registry.create_session()
    young_id = registry.create_session()

    evicted = registry.sweep_expired(timedelta(minutes=60), now=now)

    assert evicted == 1
    assert registry.get_session(old_id) is None
    assert registry.get_session(young_id) is not None


def test_evicted_session_rejects_publish_through_stale_reference(registry):
    session_id = registry.create_session()
    session = registry.get_session(session_id)

    registry.sweep_expired(timedelta(0))

    assert session.closed
    with pytest.raises(SessionNotFoundError):
        registry.publish(session_id, "too late")


def test_close_evicts_all_sessions(registry):
    session_id = registry.create_session()
    channel = RecordingChannel()
    registry.subscribe(session_id, channel)

    registry.close()

    assert registry.session_count == 0
    assert registry.subscriber_count == 0
    assert channel.closed
