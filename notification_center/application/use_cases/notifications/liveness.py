"""Heartbeat-based detection of silently dead subscriptions."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from notification_center.application.ports import Scheduler
from notification_center.domain.entities import ConnectionState
from notification_center.infrastructure.scheduler import Ticker

from .reconnect import ReconnectPolicy
from .subscription import ChannelSubscription

logger = logging.getLogger(__name__)

DEFAULT_HEARTBEAT_INTERVAL = 30.0


class LivenessMonitor:
    """Send a heartbeat every ``interval`` seconds over the current subscription.

    When the tick finds the subscription anywhere but ``subscribed``, or a
    heartbeat write fails, the monitor hands control to the reconnect policy;
    it never reconnects on its own. Heartbeats are not acknowledged. A failure
    that completes after its subscription was replaced or already left
    ``subscribed`` is not reported.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        policy: ReconnectPolicy,
        current_subscription: Callable[[], ChannelSubscription | None],
        *,
        interval: float = DEFAULT_HEARTBEAT_INTERVAL,
    ) -> None:
        self._policy = policy
        self._current_subscription = current_subscription
        self._ticker = Ticker(scheduler, interval, self._tick)
        self._inflight: set[asyncio.Task[None]] = set()
        self._last_failed: ChannelSubscription | None = None

    @property
    def running(self) -> bool:
        return self._ticker.running

    def start(self) -> None:
        self._ticker.start()

    def stop(self) -> None:
        self._ticker.cancel()
        for task in list(self._inflight):
            task.cancel()
        self._inflight.clear()

    def _tick(self) -> None:
        subscription = self._current_subscription()
        if subscription is None or subscription.state is not ConnectionState.SUBSCRIBED:
            state = subscription.state.value if subscription is not None else "missing"
            self._policy.on_failure(f"heartbeat skipped: subscription {state}")
            return

        task = asyncio.get_running_loop().create_task(self._send(subscription))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _send(self, subscription: ChannelSubscription) -> None:
        try:
            await subscription.send_heartbeat()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if subscription is self._last_failed:
                return
            if (
                subscription is not self._current_subscription()
                or subscription.state is not ConnectionState.SUBSCRIBED
            ):
                logger.debug("Ignoring heartbeat failure of a replaced subscription: %r", exc)
                return
            self._last_failed = subscription
            logger.warning("Heartbeat failed: %r", exc)
            self._policy.on_failure(f"heartbeat failed: {exc}")


__all__ = ["DEFAULT_HEARTBEAT_INTERVAL", "LivenessMonitor"]
