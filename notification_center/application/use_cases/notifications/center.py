"""Consumer-facing composition of the notification delivery components."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial
from typing import TypeVar

from notification_center.application.ports import (
    BacklogSource,
    ReadMutation,
    Scheduler,
    TransportFactory,
)
from notification_center.domain.entities import ConnectionState, Notification
from notification_center.domain.errors import BacklogFetchError, ReadMutationError
from notification_center.infrastructure.scheduler import LoopScheduler

from .backlog import BacklogFetcher
from .guards import report_misuse
from .liveness import DEFAULT_HEARTBEAT_INTERVAL, LivenessMonitor
from .reconnect import (
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_MAX_DELAY,
    DEFAULT_RECONNECT_DELAY,
    ReconnectPolicy,
)
from .store import DEFAULT_CAPACITY, MergeResult, NotificationStore
from .subscription import ChannelSubscription

logger = logging.getLogger(__name__)

ALERT_BACKLOG = "backlog"
ALERT_MARK_READ = "mark_read"
ALERT_UNAVAILABLE = "unavailable"

_T = TypeVar("_T")


@dataclass(frozen=True)
class Alert:
    """Soft error surfaced to the UI layer (toast or banner)."""

    kind: str
    message: str
    dismissible: bool = True


@dataclass(frozen=True)
class NotificationSnapshot:
    """Everything the notification dropdown needs to render."""

    notifications: tuple[Notification, ...]
    unread_count: int
    connection_state: ConnectionState
    available: bool


class NotificationView:
    """Handle returned by :meth:`NotificationCenter.activate`."""

    def __init__(self, center: "NotificationCenter") -> None:
        self._center = center

    def snapshot(self) -> NotificationSnapshot:
        return self._center.snapshot()

    def on_change(self, listener: Callable[[NotificationSnapshot], None]) -> Callable[[], None]:
        return self._center.on_change(listener)


class NotificationCenter:
    """Keep a member's notifications live for one activation.

    Activation seeds the store from the backlog while the channel subscription
    opens. Pushed notifications merge into the same store, the liveness
    monitor probes the subscription and the reconnect policy replaces it after
    failures. :meth:`deactivate` releases timers, the channel and any
    in-flight backlog result. A center is activated at most once.
    """

    def __init__(
        self,
        *,
        transport_factory: TransportFactory,
        backlog_source: BacklogSource,
        read_mutation: ReadMutation,
        scheduler: Scheduler | None = None,
        topic: str = "notifications",
        heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        reconnect_backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
        reconnect_max_delay: float = DEFAULT_MAX_DELAY,
        reconnect_max_attempts: int | None = None,
        connect_timeout: float = 10.0,
        backlog_limit: int = 50,
        cache_size: int = DEFAULT_CAPACITY,
        strict: bool = False,
    ) -> None:
        scheduler = scheduler or LoopScheduler()
        self._transport_factory = transport_factory
        self._topic = topic
        self._connect_timeout = connect_timeout
        self._backlog_limit = backlog_limit
        self._strict = strict

        self._store = NotificationStore(
            read_mutation, capacity=cache_size, on_change=self._notify_change
        )
        self._fetcher = BacklogFetcher(backlog_source, self._store)
        self._policy = ReconnectPolicy(
            scheduler,
            self._reconnect,
            initial_delay=reconnect_delay,
            factor=reconnect_backoff_factor,
            max_delay=reconnect_max_delay,
            max_attempts=reconnect_max_attempts,
            on_exhausted=self._handle_exhausted,
        )
        self._monitor = LivenessMonitor(
            scheduler,
            self._policy,
            lambda: self._subscription,
            interval=heartbeat_interval,
        )

        self._subscription: ChannelSubscription | None = None
        self._retired: list[ChannelSubscription] = []
        self._backlog_task: asyncio.Task[bool] | None = None
        self._view = NotificationView(self)
        self._active = False
        self._deactivated = False
        self._available = True
        self._change_listeners: list[Callable[[NotificationSnapshot], None]] = []
        self._notification_listeners: list[Callable[[Notification], None]] = []
        self._alert_listeners: list[Callable[[Alert], None]] = []

    @property
    def active(self) -> bool:
        return self._active

    @property
    def store(self) -> NotificationStore:
        return self._store

    @property
    def policy(self) -> ReconnectPolicy:
        return self._policy

    @property
    def subscription(self) -> ChannelSubscription | None:
        return self._subscription

    @property
    def connection_state(self) -> ConnectionState:
        subscription = self._subscription
        state = subscription.state if subscription is not None else ConnectionState.IDLE
        if (
            self._active
            and self._policy.in_progress
            and state is not ConnectionState.SUBSCRIBED
        ):
            return ConnectionState.RECONNECTING
        return state

    def activate(self) -> NotificationView:
        """Start delivery; must be called from the running event loop."""

        if self._active or self._deactivated:
            report_misuse(
                "activate() called on an already used notification center",
                strict=self._strict,
                logger=logger,
            )
            return self._view

        self._active = True
        logger.info("Activating notification center on %s", self._topic)
        self._open_subscription()
        self._monitor.start()
        self._backlog_task = asyncio.get_running_loop().create_task(self._load_backlog())
        return self._view

    def deactivate(self) -> None:
        """Release every timer, the channel handle and pending backlog results."""

        if not self._active:
            return
        self._active = False
        self._deactivated = True
        self._monitor.stop()
        self._policy.close()
        self._fetcher.invalidate()
        if self._subscription is not None:
            self._subscription.teardown()
            self._retired.append(self._subscription)
        self._notify_change()
        self._change_listeners.clear()
        self._notification_listeners.clear()
        self._alert_listeners.clear()
        logger.info("Notification center deactivated")

    async def wait_closed(self) -> None:
        """Wait until every subscription this center opened released its transport."""

        retired, self._retired = self._retired, []
        for subscription in retired:
            await subscription.wait_closed()

    def snapshot(self) -> NotificationSnapshot:
        store_snapshot = self._store.snapshot()
        return NotificationSnapshot(
            notifications=store_snapshot.notifications,
            unread_count=store_snapshot.unread_count,
            connection_state=self.connection_state,
            available=self._available,
        )

    def on_change(self, listener: Callable[[NotificationSnapshot], None]) -> Callable[[], None]:
        return _register(self._change_listeners, listener)

    def on_notification(self, listener: Callable[[Notification], None]) -> Callable[[], None]:
        """Register ``listener`` for notifications that arrive over the channel."""

        return _register(self._notification_listeners, listener)

    def on_alert(self, listener: Callable[[Alert], None]) -> Callable[[], None]:
        return _register(self._alert_listeners, listener)

    async def mark_read(self, notification_id: str) -> bool:
        if not self._ensure_active("mark_read"):
            return False
        try:
            return await self._store.mark_read(notification_id)
        except ReadMutationError as exc:
            logger.warning("Mark as read failed for %s: %s", notification_id, exc)
        except Exception:
            logger.exception("Unexpected error marking notification %s as read", notification_id)
        self._alert(Alert(kind=ALERT_MARK_READ, message="Failed to mark as read"))
        return False

    async def mark_all_read(self) -> list[str]:
        """Mark every unread notification as read; return the ids that failed."""

        if not self._ensure_active("mark_all_read"):
            return []
        failed = await self._store.mark_all_read()
        if failed:
            self._alert(
                Alert(
                    kind=ALERT_MARK_READ,
                    message=f"Failed to mark {len(failed)} notification(s) as read",
                )
            )
        return failed

    async def refresh(self) -> bool:
        """Resynchronize the store from the backlog; ``False`` when the fetch failed."""

        if not self._ensure_active("refresh"):
            return False
        try:
            await self._fetcher.fetch(self._backlog_limit)
        except BacklogFetchError as exc:
            logger.warning("Backlog fetch failed: %s", exc)
            if self._active:
                self._alert(Alert(kind=ALERT_BACKLOG, message="Could not load notifications"))
            return False
        return True

    async def _load_backlog(self) -> bool:
        return await self.refresh()

    def _open_subscription(self) -> None:
        subscription = ChannelSubscription(
            self._transport_factory,
            topic=self._topic,
            connect_timeout=self._connect_timeout,
            strict=self._strict,
        )
        self._subscription = subscription
        subscription.subscribe(
            self._handle_event, partial(self._handle_state_change, subscription)
        )

    async def _reconnect(self) -> None:
        previous = self._subscription
        if previous is not None:
            previous.teardown()
            await previous.wait_closed()
        if not self._active:
            return
        self._open_subscription()

    def _handle_event(self, notification: Notification) -> None:
        if not self._active:
            return
        result = self._store.merge(notification)
        if result is MergeResult.INSERTED:
            self._emit(self._notification_listeners, notification)

    def _handle_state_change(
        self,
        subscription: ChannelSubscription,
        state: ConnectionState,
        error: BaseException | None,
    ) -> None:
        if subscription is not self._subscription or not self._active:
            return
        if state is ConnectionState.SUBSCRIBED:
            self._policy.reset()
        elif state is ConnectionState.DEGRADED or (
            state is ConnectionState.CLOSED and error is not None
        ):
            self._policy.on_failure(f"subscription {state.value}: {error!r}")
        self._notify_change()

    def _handle_exhausted(self, reason: str) -> None:
        self._available = False
        self._alert(
            Alert(
                kind=ALERT_UNAVAILABLE,
                message="Notifications are unavailable",
                dismissible=False,
            )
        )
        self._notify_change()

    def _ensure_active(self, operation: str) -> bool:
        if self._active:
            return True
        state = "deactivated" if self._deactivated else "inactive"
        report_misuse(
            f"{operation}() called on an {state} notification center",
            strict=self._strict,
            logger=logger,
        )
        return False

    def _notify_change(self) -> None:
        if not self._change_listeners:
            return
        self._emit(self._change_listeners, self.snapshot())

    def _alert(self, alert: Alert) -> None:
        self._emit(self._alert_listeners, alert)

    @staticmethod
    def _emit(listeners: list[Callable[[_T], None]], value: _T) -> None:
        for listener in list(listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("Notification listener failed")


def _register(listeners: list[_T], listener: _T) -> Callable[[], None]:
    listeners.append(listener)

    def unsubscribe() -> None:
        if listener in listeners:
            listeners.remove(listener)

    return unsubscribe


__all__ = [
    "ALERT_BACKLOG",
    "ALERT_MARK_READ",
    "ALERT_UNAVAILABLE",
    "Alert",
    "NotificationCenter",
    "NotificationSnapshot",
    "NotificationView",
]
