"""Timer services backed by the running asyncio event loop."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from notification_center.application.ports import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


class LoopScheduler:
    """Schedule callbacks on the event loop that is running when they are armed."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class Ticker:
    """Repeat ``callback`` every ``interval`` seconds until cancelled.

    The ticker re-arms a single one-shot timer after each firing, so
    :meth:`cancel` releases everything it holds. Exceptions raised by the
    callback are logged and do not stop the ticker.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        interval: float,
        callback: Callable[[], None],
    ) -> None:
        if interval <= 0:
            raise ValueError("Ticker interval must be positive")
        self._scheduler = scheduler
        self._interval = interval
        self._callback = callback
        self._handle: TimerHandle | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._arm()

    def cancel(self) -> None:
        self._running = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _arm(self) -> None:
        self._handle = self._scheduler.call_later(self._interval, self._fire)

    def _fire(self) -> None:
        self._handle = None
        if not self._running:
            return
        try:
            self._callback()
        except Exception:
            logger.exception("Ticker callback failed")
        if self._running:
            self._arm()


__all__ = ["LoopScheduler", "Ticker"]
