"""Domain entities exposed by the notification client."""

from .connection_state import LIVE_CONNECTION_STATES, ConnectionState
from .notification import (
    KNOWN_NOTIFICATION_KINDS,
    NOTIFICATION_KIND_EVENT,
    NOTIFICATION_KIND_PAYMENT,
    Notification,
    badge_label,
)

__all__ = [
    "ConnectionState",
    "LIVE_CONNECTION_STATES",
    "KNOWN_NOTIFICATION_KINDS",
    "NOTIFICATION_KIND_EVENT",
    "NOTIFICATION_KIND_PAYMENT",
    "Notification",
    "badge_label",
]
