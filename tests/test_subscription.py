"""Tests for the channel subscription state machine."""

from __future__ import annotations

import asyncio
import logging

import pytest

from fakes import FakeChannel, push_message, settle
from notification_center.application.use_cases.notifications import ChannelSubscription
from notification_center.domain.entities import ConnectionState, Notification
from notification_center.domain.errors import ProgrammingError, TransportError


class Recorder:
    def __init__(self) -> None:
        self.events: list[Notification] = []
        self.states: list[ConnectionState] = []
        self.errors: list[BaseException | None] = []

    def on_event(self, notification: Notification) -> None:
        self.events.append(notification)

    def on_state(self, state: ConnectionState, error: BaseException | None) -> None:
        self.states.append(state)
        self.errors.append(error)


def _subscription(channel: FakeChannel, **kwargs) -> ChannelSubscription:
    return ChannelSubscription(channel, topic="notifications", **kwargs)


def test_subscribe_reaches_subscribed_after_ack(channel: FakeChannel) -> None:
    recorder = Recorder()
    subscription = _subscription(channel)

    async def scenario() -> None:
        assert subscription.subscribe(recorder.on_event, recorder.on_state) is True
        assert subscription.state is ConnectionState.CONNECTING
        await settle()
        assert subscription.state is ConnectionState.SUBSCRIBED
        subscription.teardown()
        await subscription.wait_closed()

    asyncio.run(scenario())

    assert recorder.states == [
        ConnectionState.CONNECTING,
        ConnectionState.SUBSCRIBED,
        ConnectionState.CLOSED,
    ]
    assert recorder.errors == [None, None, None]
    assert channel.latest.topic == "notifications"
    assert channel.latest.closed is True


def test_inbound_events_are_normalized(channel: FakeChannel) -> None:
    recorder = Recorder()
    subscription = _subscription(channel)

    async def scenario() -> None:
        subscription.subscribe(recorder.on_event, recorder.on_state)
        await settle()
        channel.latest.push(push_message("1"))
        channel.latest.push(push_message("1", event_type="UPDATE", read=True))
        await settle()
        subscription.teardown()
        await subscription.wait_closed()

    asyncio.run(scenario())

    assert [n.id for n in recorder.events] == ["1", "1"]
    first = recorder.events[0]
    assert first.kind == "payment"
    assert first.subject_id == "member-1"
    assert first.metadata["payment_id"] == "pay-1"
    assert recorder.events[1].read is True


def test_malformed_payloads_are_dropped(channel: FakeChannel, caplog: pytest.LogCaptureFixture) -> None:
    """Bad messages are logged and never reach the consumer or the state."""

    recorder = Recorder()
    subscription = _subscription(channel)
    missing_created_at = push_message("2")
    del missing_created_at["payload"]["created_at"]
    missing_id = push_message("3")
    del missing_id["payload"]["id"]

    async def scenario() -> None:
        subscription.subscribe(recorder.on_event, recorder.on_state)
        await settle()
        transport = channel.latest
        transport.push(missing_created_at)
        transport.push(missing_id)
        transport.push("{not json")
        transport.push({"eventType": "INSERT", "payload": ["not", "an", "object"]})
        transport.push(push_message("4", event_type="DELETE"))
        transport.push(push_message("5"))
        await settle()
        assert subscription.state is ConnectionState.SUBSCRIBED
        subscription.teardown()
        await subscription.wait_closed()

    with caplog.at_level(logging.WARNING):
        asyncio.run(scenario())

    assert [n.id for n in recorder.events] == ["5"]
    assert caplog.text.count("Dropping malformed notification payload") == 3
    assert "Dropping undecodable channel message" in caplog.text


def test_consumer_errors_do_not_break_the_stream(channel: FakeChannel) -> None:
    received: list[str] = []

    def on_event(notification: Notification) -> None:
        received.append(notification.id)
        if notification.id == "1":
            raise RuntimeError("render failed")

    subscription = _subscription(channel)

    async def scenario() -> None:
        subscription.subscribe(on_event, lambda state, error: None)
        await settle()
        channel.latest.push(push_message("1"))
        channel.latest.push(push_message("2"))
        await settle()
        assert subscription.state is ConnectionState.SUBSCRIBED
        subscription.teardown()
        await subscription.wait_closed()

    asyncio.run(scenario())

    assert received == ["1", "2"]


def test_double_subscribe_is_rejected_in_strict_mode(channel: FakeChannel) -> None:
    recorder = Recorder()
    subscription = _subscription(channel, strict=True)

    async def scenario() -> None:
        subscription.subscribe(recorder.on_event, recorder.on_state)
        with pytest.raises(ProgrammingError):
            subscription.subscribe(recorder.on_event, recorder.on_state)
        await settle()
        with pytest.raises(ProgrammingError):
            subscription.subscribe(recorder.on_event, recorder.on_state)
        subscription.teardown()
        await subscription.wait_closed()

    asyncio.run(scenario())

    assert len(channel.transports) == 1


def test_double_subscribe_is_a_noop_outside_strict_mode(channel: FakeChannel) -> None:
    recorder = Recorder()
    subscription = _subscription(channel)

    async def scenario() -> None:
        subscription.subscribe(recorder.on_event, recorder.on_state)
        await settle()
        assert subscription.subscribe(recorder.on_event, recorder.on_state) is False
        await settle()
        subscription.teardown()
        await subscription.wait_closed()

    asyncio.run(scenario())

    assert len(channel.transports) == 1
    assert recorder.states.count(ConnectionState.CONNECTING) == 1


def test_teardown_is_terminal_and_idempotent(channel: FakeChannel) -> None:
    recorder = Recorder()
    subscription = _subscription(channel)

    async def scenario() -> None:
        subscription.subscribe(recorder.on_event, recorder.on_state)
        await settle()
        transport = channel.latest
        subscription.teardown()
        subscription.teardown()
        transport.push(push_message("late"))
        transport.fail(TransportError("late failure"))
        await settle()
        await subscription.wait_closed()
        assert subscription.subscribe(recorder.on_event, recorder.on_state) is False

    asyncio.run(scenario())

    assert recorder.states.count(ConnectionState.CLOSED) == 1
    assert recorder.states[-1] is ConnectionState.CLOSED
    assert recorder.events == []
    assert subscription.state is ConnectionState.CLOSED
    assert channel.latest.closed is True
    assert len(channel.transports) == 1


def test_teardown_before_the_task_starts_opens_nothing(channel: FakeChannel) -> None:
    subscription = _subscription(channel)

    async def scenario() -> None:
        subscription.subscribe(lambda n: None, lambda state, error: None)
        subscription.teardown()
        await subscription.wait_closed()

    asyncio.run(scenario())

    assert channel.transports == []
    assert subscription.state is ConnectionState.CLOSED


def test_transport_error_degrades_subscription(channel: FakeChannel) -> None:
    recorder = Recorder()
    subscription = _subscription(channel)

    async def scenario() -> None:
        subscription.subscribe(recorder.on_event, recorder.on_state)
        await settle()
        channel.latest.fail(TransportError("connection reset"))
        await settle()

    asyncio.run(scenario())

    assert subscription.state is ConnectionState.DEGRADED
    assert isinstance(recorder.errors[-1], TransportError)
    assert channel.latest.closed is True


def test_server_close_degrades_subscription(channel: FakeChannel) -> None:
    recorder = Recorder()
    subscription = _subscription(channel)

    async def scenario() -> None:
        subscription.subscribe(recorder.on_event, recorder.on_state)
        await settle()
        channel.latest.end()
        await settle()

    asyncio.run(scenario())

    assert recorder.states[-1] is ConnectionState.DEGRADED
    assert "closed by the server" in str(recorder.errors[-1])


def test_subscribe_failure_closes_subscription(channel: FakeChannel) -> None:
    channel.fail_subscribe = True
    recorder = Recorder()
    subscription = _subscription(channel)

    async def scenario() -> None:
        subscription.subscribe(recorder.on_event, recorder.on_state)
        await settle()

    asyncio.run(scenario())

    assert recorder.states == [ConnectionState.CONNECTING, ConnectionState.CLOSED]
    assert isinstance(recorder.errors[-1], TransportError)
    assert channel.latest.closed is True


def test_subscribe_times_out_without_ack() -> None:
    channel = FakeChannel(auto_ack=False)
    recorder = Recorder()
    subscription = _subscription(channel, connect_timeout=0.01)

    async def scenario() -> None:
        subscription.subscribe(recorder.on_event, recorder.on_state)
        await asyncio.sleep(0.05)
        await settle()

    asyncio.run(scenario())

    assert subscription.state is ConnectionState.CLOSED
    assert isinstance(recorder.errors[-1], asyncio.TimeoutError)


def test_send_heartbeat_requires_subscribed_state(channel: FakeChannel) -> None:
    subscription = _subscription(channel)

    async def scenario() -> None:
        with pytest.raises(TransportError):
            await subscription.send_heartbeat()
        subscription.subscribe(lambda n: None, lambda state, error: None)
        await settle()
        await subscription.send_heartbeat()
        subscription.teardown()
        await subscription.wait_closed()

    asyncio.run(scenario())

    assert len(channel.latest.heartbeats) == 1
    assert "timestamp" in channel.latest.heartbeats[0]


def test_transport_factory_failure_closes_subscription() -> None:
    recorder = Recorder()

    def factory():
        raise OSError("redis unreachable")

    subscription = ChannelSubscription(factory, topic="notifications")

    async def scenario() -> None:
        subscription.subscribe(recorder.on_event, recorder.on_state)
        await settle()
        await subscription.wait_closed()

    asyncio.run(scenario())

    assert recorder.states == [ConnectionState.CONNECTING, ConnectionState.CLOSED]
    assert isinstance(recorder.errors[-1], OSError)
    assert subscription.state is ConnectionState.CLOSED
