"""Pydantic models describing notification records on the wire."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from notification_center.domain.entities import Notification
from notification_center.utils import localize

UNKNOWN_KIND = "unknown"


class NotificationRecord(BaseModel):
    """Row of the notifications table as returned by the data API or channel.

    Columns this client does not model are kept in ``model_extra`` and folded
    into the entity metadata.
    """

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: str = Field(..., min_length=1)
    member_id: str | None = None
    type: str | None = None
    message: str = ""
    is_read: bool = False
    created_at: datetime
    send_at: datetime | None = None
    metadata: dict[str, Any] | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_kind(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() or None
        return value

    @field_validator("message", mode="before")
    @classmethod
    def _default_message(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("is_read", mode="before")
    @classmethod
    def _default_read(cls, value: Any) -> Any:
        return False if value is None else value

    def to_entity(self) -> Notification:
        metadata: dict[str, Any] = dict(self.model_extra or {})
        metadata.update(self.metadata or {})
        return Notification(
            id=self.id,
            subject_id=self.member_id,
            kind=self.type or UNKNOWN_KIND,
            message=self.message,
            read=self.is_read,
            created_at=localize(self.created_at),
            send_at=localize(self.send_at),
            metadata=metadata,
        )


def parse_notification(raw: Any) -> Notification:
    """Validate ``raw`` and return the matching :class:`Notification`.

    Raises ``ValueError`` (``pydantic.ValidationError`` included) when the
    record is not a mapping or lacks ``id``/``created_at``.
    """

    if not isinstance(raw, Mapping):
        raise ValueError(f"Notification payload must be an object, got {type(raw).__name__}")
    return NotificationRecord.model_validate(dict(raw)).to_entity()


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return the wire representation for ``notification``."""

    return {
        "id": notification.id,
        "member_id": notification.subject_id,
        "type": notification.kind,
        "message": notification.message,
        "is_read": notification.read,
        "created_at": notification.created_at.isoformat(),
        "send_at": notification.send_at.isoformat() if notification.send_at else None,
        "metadata": dict(notification.metadata),
    }


__all__ = [
    "NotificationRecord",
    "UNKNOWN_KIND",
    "parse_notification",
    "serialize_notification",
]
