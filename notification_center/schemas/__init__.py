"""Wire-level schemas shared by the backlog query and the push channel."""

from .notification import (
    UNKNOWN_KIND,
    NotificationRecord,
    parse_notification,
    serialize_notification,
)

__all__ = [
    "NotificationRecord",
    "UNKNOWN_KIND",
    "parse_notification",
    "serialize_notification",
]
