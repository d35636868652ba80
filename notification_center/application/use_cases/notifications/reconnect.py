"""Retry timing for re-establishing the notification subscription."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from notification_center.application.ports import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

DEFAULT_RECONNECT_DELAY = 5.0
DEFAULT_BACKOFF_FACTOR = 2.0
DEFAULT_MAX_DELAY = 60.0


class ReconnectPolicy:
    """Single owner of reconnect scheduling.

    Failure signals arriving while an attempt is pending are folded into it.
    The delay grows by ``factor`` per attempt up to ``max_delay`` and returns
    to ``initial_delay`` after :meth:`reset`. With ``max_attempts`` set, the
    policy stops after that many consecutive attempts and reports it through
    ``on_exhausted``.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        reconnect: Callable[[], Awaitable[None]],
        *,
        initial_delay: float = DEFAULT_RECONNECT_DELAY,
        factor: float = DEFAULT_BACKOFF_FACTOR,
        max_delay: float = DEFAULT_MAX_DELAY,
        max_attempts: int | None = None,
        on_exhausted: Callable[[str], None] | None = None,
    ) -> None:
        if initial_delay <= 0:
            raise ValueError("initial_delay must be positive")
        if factor < 1:
            raise ValueError("factor must be at least 1")
        if max_delay < initial_delay:
            raise ValueError("max_delay must not be lower than initial_delay")
        if max_attempts is not None and max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        self._scheduler = scheduler
        self._reconnect = reconnect
        self._initial_delay = initial_delay
        self._factor = factor
        self._max_delay = max_delay
        self._max_attempts = max_attempts
        self._on_exhausted = on_exhausted
        self._attempts = 0
        self._timer: TimerHandle | None = None
        self._attempt_task: asyncio.Task[None] | None = None
        self._exhausted = False
        self._closed = False

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def pending(self) -> bool:
        return self._timer is not None

    @property
    def in_progress(self) -> bool:
        return self.pending or (
            self._attempt_task is not None and not self._attempt_task.done()
        )

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def next_delay(self) -> float:
        return min(self._initial_delay * self._factor**self._attempts, self._max_delay)

    def on_failure(self, reason: str) -> None:
        """Schedule a reconnect attempt unless one is already pending."""

        if self._closed or self._exhausted:
            return
        if self._timer is not None:
            logger.debug("Reconnect already pending; folding signal: %s", reason)
            return
        if self._attempt_task is not None and not self._attempt_task.done():
            self._attempt_task.cancel()
            self._attempt_task = None

        if self._max_attempts is not None and self._attempts >= self._max_attempts:
            self._exhausted = True
            logger.error(
                "Giving up on notification channel after %d attempts: %s",
                self._attempts,
                reason,
            )
            if self._on_exhausted is not None:
                try:
                    self._on_exhausted(reason)
                except Exception:
                    logger.exception("Reconnect exhaustion handler failed")
            return

        delay = self.next_delay()
        logger.info(
            "Reconnecting in %.1fs (attempt %d): %s", delay, self._attempts + 1, reason
        )
        self._timer = self._scheduler.call_later(delay, self._fire)

    def reset(self) -> None:
        """Return to the initial delay after a successful subscription.

        A timer still pending at that point was armed for a failure the new
        subscription already resolved, so it is cancelled.
        """

        if self._attempts:
            logger.info("Notification channel recovered after %d attempts", self._attempts)
        self._attempts = 0
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def close(self) -> None:
        """Cancel the pending timer and any running attempt; ignore later signals."""

        self._closed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._attempt_task is not None and not self._attempt_task.done():
            self._attempt_task.cancel()
        self._attempt_task = None

    def _fire(self) -> None:
        self._timer = None
        if self._closed:
            return
        self._attempts += 1
        self._attempt_task = asyncio.get_running_loop().create_task(self._attempt())

    async def _attempt(self) -> None:
        try:
            await self._reconnect()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Reconnect attempt failed: %r", exc)
            self._attempt_task = None
            self.on_failure(f"reconnect attempt failed: {exc}")


__all__ = [
    "DEFAULT_BACKOFF_FACTOR",
    "DEFAULT_MAX_DELAY",
    "DEFAULT_RECONNECT_DELAY",
    "ReconnectPolicy",
]
