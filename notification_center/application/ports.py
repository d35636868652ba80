"""Interfaces of the collaborators the notification client talks to."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Sequence
from typing import Any, Protocol

from notification_center.domain.entities import Notification


class PushTransport(Protocol):
    """One connection to the server-pushed event stream.

    A transport instance is used for a single subscription and is discarded
    after :meth:`close`.
    """

    async def subscribe(self, topic: str) -> None:
        """Subscribe to ``topic`` and return once the server acknowledged it."""
        ...

    def messages(self) -> AsyncIterator[Any]:
        """Yield raw inbound messages until the stream ends or fails."""
        ...

    async def send_heartbeat(self, payload: dict[str, Any]) -> None:
        """Send a best-effort liveness probe; raise when the write fails."""
        ...

    async def close(self) -> None:
        """Release the underlying connection."""
        ...


TransportFactory = Callable[[], PushTransport]


class BacklogSource(Protocol):
    """Read endpoint returning the most recent notifications of the principal."""

    async def list_recent(self, limit: int) -> Sequence[Notification]:
        """Return at most ``limit`` notifications ordered by ``created_at`` desc.

        Raises :class:`~notification_center.domain.errors.BacklogFetchError`.
        """
        ...


class ReadMutation(Protocol):
    """Write endpoint persisting the ``read`` flag."""

    async def mark_read(self, notification_id: str) -> None:
        """Persist ``read=True``.

        Raises :class:`~notification_center.domain.errors.NotificationNotFoundError`
        when the record no longer exists and
        :class:`~notification_center.domain.errors.ReadMutationError` otherwise.
        """
        ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Source of one-shot timers running callbacks on the event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


__all__ = [
    "BacklogSource",
    "PushTransport",
    "ReadMutation",
    "Scheduler",
    "TimerHandle",
    "TransportFactory",
]
