"""Errors raised by the notification client."""

from __future__ import annotations


class NotificationError(RuntimeError):
    """Base class for notification client failures."""


class ProgrammingError(NotificationError):
    """Raised in strict mode when a component is used against its contract."""


class BacklogFetchError(NotificationError):
    """Raised when the recent notifications snapshot cannot be retrieved."""


class ReadMutationError(NotificationError):
    """Raised when the server rejects or never receives a mark-as-read write."""

    def __init__(self, notification_id: str, message: str | None = None) -> None:
        self.notification_id = notification_id
        super().__init__(message or f"Could not mark notification {notification_id} as read")


class NotificationNotFoundError(ReadMutationError):
    """Raised when the notification no longer exists on the server."""

    def __init__(self, notification_id: str) -> None:
        super().__init__(notification_id, f"Notification {notification_id} not found")


class TransportError(NotificationError):
    """Raised by push channel transports on connection or send failures."""


__all__ = [
    "NotificationError",
    "ProgrammingError",
    "BacklogFetchError",
    "ReadMutationError",
    "NotificationNotFoundError",
    "TransportError",
]
