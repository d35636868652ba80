"""Single logical subscription to the notification push channel."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from notification_center.application.ports import PushTransport, TransportFactory
from notification_center.domain.entities import (
    LIVE_CONNECTION_STATES,
    ConnectionState,
    Notification,
)
from notification_center.domain.errors import TransportError
from notification_center.schemas import parse_notification

from .guards import report_misuse

logger = logging.getLogger(__name__)

DELIVERED_EVENT_TYPES = frozenset({"INSERT", "UPDATE"})

EventCallback = Callable[[Notification], None]
StateCallback = Callable[[ConnectionState, "BaseException | None"], None]


class ChannelSubscription:
    """Own one transport handle and report its connection state.

    States move ``idle -> connecting -> subscribed``; a failed or timed out
    subscribe ends in ``closed``, a transport failure after the ack ends in
    ``degraded``. :meth:`teardown` moves any state to ``closed``, which is
    terminal: a new instance is needed to subscribe again.

    ``on_state_change(state, error)`` runs synchronously on every transition.
    ``error`` carries the failure for failure-driven transitions and is
    ``None`` for transitions requested by the owner.
    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        *,
        topic: str,
        connect_timeout: float = 10.0,
        strict: bool = False,
    ) -> None:
        self._transport_factory = transport_factory
        self._topic = topic
        self._connect_timeout = connect_timeout
        self._strict = strict
        self._state = ConnectionState.IDLE
        self._transport: PushTransport | None = None
        self._task: asyncio.Task[None] | None = None
        self._on_event: EventCallback | None = None
        self._on_state_change: StateCallback | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def topic(self) -> str:
        return self._topic

    def subscribe(self, on_event: EventCallback, on_state_change: StateCallback) -> bool:
        """Open the subscription; must be called from the running event loop.

        Returns ``False`` (or raises in strict mode) when the instance is not
        ``idle``, so a live subscription is never doubled.
        """

        if self._state is not ConnectionState.IDLE:
            if self._state in LIVE_CONNECTION_STATES:
                message = f"subscribe() called on a {self._state.value} subscription"
            else:
                message = f"subscribe() called on a {self._state.value} subscription; create a new one"
            report_misuse(message, strict=self._strict, logger=logger)
            return False

        self._on_event = on_event
        self._on_state_change = on_state_change
        self._set_state(ConnectionState.CONNECTING)
        self._task = asyncio.get_running_loop().create_task(self._run())
        return True

    def teardown(self) -> None:
        """Release the transport and move to ``closed``; safe to call repeatedly."""

        if self._state is ConnectionState.CLOSED:
            return
        self._set_state(ConnectionState.CLOSED)
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait_closed(self) -> None:
        """Wait until the transport handle has been released."""

        if self._task is not None:
            await asyncio.wait({self._task})

    async def send_heartbeat(self) -> None:
        """Send a liveness probe over the current transport; raise on failure."""

        transport = self._transport
        if self._state is not ConnectionState.SUBSCRIBED or transport is None:
            raise TransportError(f"Cannot send heartbeat while {self._state.value}")
        await transport.send_heartbeat({"timestamp": datetime.now(tz=timezone.utc).isoformat()})

    async def _run(self) -> None:
        try:
            transport = self._transport_factory()
        except Exception as exc:
            logger.warning("Could not open a transport for %s: %r", self._topic, exc)
            self._set_state(ConnectionState.CLOSED, exc)
            return
        self._transport = transport
        try:
            try:
                await asyncio.wait_for(transport.subscribe(self._topic), self._connect_timeout)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("Subscription to %s failed: %r", self._topic, exc)
                self._set_state(ConnectionState.CLOSED, exc)
                return

            self._set_state(ConnectionState.SUBSCRIBED)
            logger.info("Subscribed to notification channel %s", self._topic)

            try:
                async for raw in transport.messages():
                    if self._state is not ConnectionState.SUBSCRIBED:
                        break
                    self._dispatch(raw)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("Notification channel %s failed: %r", self._topic, exc)
                self._degrade(exc)
                return

            self._degrade(TransportError(f"Channel {self._topic} closed by the server"))
        finally:
            self._transport = None
            await self._release(transport)

    async def _release(self, transport: PushTransport) -> None:
        try:
            await transport.close()
        except Exception:
            logger.warning("Error closing notification transport", exc_info=True)

    def _degrade(self, error: BaseException) -> None:
        if self._state is ConnectionState.SUBSCRIBED:
            self._set_state(ConnectionState.DEGRADED, error)

    def _dispatch(self, raw: Any) -> None:
        message = _decode(raw)
        if message is None:
            logger.warning("Dropping undecodable channel message: %.200r", raw)
            return

        event_type = str(message.get("eventType") or "").upper()
        if event_type not in DELIVERED_EVENT_TYPES:
            logger.debug("Ignoring channel event %r", event_type or None)
            return

        try:
            notification = parse_notification(message.get("payload"))
        except ValueError as exc:
            logger.warning("Dropping malformed notification payload: %s", exc)
            return

        if self._on_event is None:
            return
        try:
            self._on_event(notification)
        except Exception:
            logger.exception("Notification event handler failed for %s", notification.id)

    def _set_state(
        self, state: ConnectionState, error: BaseException | None = None
    ) -> None:
        if self._state is ConnectionState.CLOSED or self._state is state:
            return
        previous = self._state
        self._state = state
        logger.debug("Subscription %s: %s -> %s", self._topic, previous.value, state.value)
        if self._on_state_change is None:
            return
        try:
            self._on_state_change(state, error)
        except Exception:
            logger.exception("Connection state handler failed")


def _decode(raw: Any) -> Mapping[str, Any] | None:
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            return None
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            return None
    if isinstance(raw, Mapping):
        return raw
    return None


__all__ = ["ChannelSubscription", "DELIVERED_EVENT_TYPES"]
