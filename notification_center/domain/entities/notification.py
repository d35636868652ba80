"""Domain entity representing a member notification."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

NOTIFICATION_KIND_EVENT = "event"
NOTIFICATION_KIND_PAYMENT = "payment"

KNOWN_NOTIFICATION_KINDS = frozenset(
    {NOTIFICATION_KIND_EVENT, NOTIFICATION_KIND_PAYMENT}
)

_DEEP_LINKS: tuple[tuple[str, str], ...] = (
    ("event_id", "/events"),
    ("payment_id", "/payments"),
)


@dataclass(frozen=True)
class Notification:
    """Information message concerning a single member.

    ``kind`` is kept as a plain string so kinds introduced upstream after this
    client was released still flow through the store untouched.
    """

    id: str
    subject_id: str | None
    kind: str
    message: str
    read: bool
    created_at: datetime
    send_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def sort_key(self) -> tuple[datetime, str]:
        return (self.created_at, self.id)

    @property
    def is_known_kind(self) -> bool:
        return self.kind in KNOWN_NOTIFICATION_KINDS

    @property
    def display_time(self) -> datetime:
        """Timestamp shown next to the message; deferred notices show ``send_at``."""

        return self.send_at or self.created_at

    def deep_link(self) -> str | None:
        """Return the dashboard path for the referenced entity, if any."""

        for key, path in _DEEP_LINKS:
            if self.metadata.get(key):
                return path
        return None


def badge_label(unread_count: int) -> str:
    """Return the text shown on the unread badge (empty when nothing is unread)."""

    if unread_count <= 0:
        return ""
    if unread_count > 99:
        return "99+"
    return str(unread_count)


__all__ = [
    "NOTIFICATION_KIND_EVENT",
    "NOTIFICATION_KIND_PAYMENT",
    "KNOWN_NOTIFICATION_KINDS",
    "Notification",
    "badge_label",
]
