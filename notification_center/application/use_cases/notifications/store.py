"""Ordered, deduplicated and bounded notification cache with unread accounting."""

from __future__ import annotations

import asyncio
import logging
from bisect import bisect_left, insort
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

from notification_center.application.ports import ReadMutation
from notification_center.domain.entities import Notification
from notification_center.domain.errors import NotificationNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 50


class MergeResult(str, Enum):
    """Outcome of :meth:`NotificationStore.merge`."""

    INSERTED = "inserted"
    UPDATED = "updated"
    STALE = "stale"
    EVICTED = "evicted"


@dataclass(frozen=True)
class StoreSnapshot:
    """Immutable view of the store used for rendering."""

    notifications: tuple[Notification, ...]
    unread_count: int


class NotificationStore:
    """Keep the most recent notifications ordered by ``created_at`` descending.

    Entries are unique by ``id``. Single mutations adjust the unread counter
    incrementally; bulk operations recount it from the flags. When more than
    ``capacity`` entries are held, the oldest ``(created_at, id)`` is evicted.
    """

    def __init__(
        self,
        writer: ReadMutation,
        *,
        capacity: int = DEFAULT_CAPACITY,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        if capacity <= 0:
            raise ValueError("Store capacity must be positive")
        self._writer = writer
        self._capacity = capacity
        self._on_change = on_change
        self._entries: dict[str, Notification] = {}
        # Ascending (created_at, id); the snapshot walks it backwards.
        self._order: list[tuple[datetime, str]] = []
        self._unread = 0
        self._pending_reads: set[str] = set()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def unread_count(self) -> int:
        return self._unread

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, notification_id: object) -> bool:
        return notification_id in self._entries

    def get(self, notification_id: str) -> Notification | None:
        return self._entries.get(notification_id)

    def snapshot(self) -> StoreSnapshot:
        notifications = tuple(
            self._entries[notification_id] for _, notification_id in reversed(self._order)
        )
        return StoreSnapshot(notifications=notifications, unread_count=self._unread)

    def recount(self) -> int:
        """Return the unread count computed from the stored flags."""

        return sum(1 for notification in self._entries.values() if not notification.read)

    def merge(self, notification: Notification) -> MergeResult:
        """Insert ``notification`` or replace the stored copy with the same id.

        A copy older than the stored one (earlier ``created_at``) is ignored.
        """

        if notification.id in self._pending_reads and not notification.read:
            notification = replace(notification, read=True)

        existing = self._entries.get(notification.id)
        if existing is None:
            self._insert(notification)
            evicted = self._evict_overflow()
            if notification.id in evicted:
                return MergeResult.EVICTED
            self._changed()
            return MergeResult.INSERTED

        if notification.created_at < existing.created_at:
            logger.debug("Ignoring stale copy of notification %s", notification.id)
            return MergeResult.STALE

        if notification.sort_key != existing.sort_key:
            self._remove_key(existing.sort_key)
            insort(self._order, notification.sort_key)
        self._entries[notification.id] = notification
        self._unread += int(not notification.read) - int(not existing.read)
        self._changed()
        return MergeResult.UPDATED

    async def mark_read(self, notification_id: str) -> bool:
        """Mark ``notification_id`` as read locally and on the server.

        The local flag flips before the server write. When the write fails the
        flag and the unread count are restored and the error is re-raised. A
        notification the server no longer knows is dropped from the store.
        Returns ``False`` when there was nothing to mark.
        """

        entry = self._entries.get(notification_id)
        if entry is None or entry.read:
            return False

        self._pending_reads.add(notification_id)
        self._set_read(notification_id, True)
        self._changed()
        try:
            await self._writer.mark_read(notification_id)
        except NotificationNotFoundError:
            logger.info("Notification %s no longer exists; dropping it", notification_id)
            self._pending_reads.discard(notification_id)
            self._discard(notification_id)
            self._changed()
            return True
        except BaseException:
            self._pending_reads.discard(notification_id)
            if self._set_read(notification_id, False):
                self._changed()
            raise
        self._pending_reads.discard(notification_id)
        return True

    async def mark_all_read(self) -> list[str]:
        """Mark every unread notification as read; return the ids that failed.

        Failed writes are rolled back individually and the unread counter is
        then recomputed from the flags.
        """

        unread_ids = [
            notification_id
            for notification_id, notification in self._entries.items()
            if not notification.read
        ]
        if not unread_ids:
            return []

        for notification_id in unread_ids:
            self._pending_reads.add(notification_id)
            self._entries[notification_id] = replace(
                self._entries[notification_id], read=True
            )
        self._unread = self.recount()
        self._changed()

        results = await asyncio.gather(
            *(self._writer.mark_read(notification_id) for notification_id in unread_ids),
            return_exceptions=True,
        )

        failed: list[str] = []
        for notification_id, result in zip(unread_ids, results):
            self._pending_reads.discard(notification_id)
            if isinstance(result, NotificationNotFoundError):
                self._discard(notification_id)
            elif isinstance(result, BaseException):
                logger.warning(
                    "Could not mark notification %s as read: %s", notification_id, result
                )
                failed.append(notification_id)
                entry = self._entries.get(notification_id)
                if entry is not None:
                    self._entries[notification_id] = replace(entry, read=False)
        self._unread = self.recount()
        self._changed()
        return failed

    def clear(self) -> None:
        self._entries.clear()
        self._order.clear()
        self._pending_reads.clear()
        self._unread = 0
        self._changed()

    def _insert(self, notification: Notification) -> None:
        self._entries[notification.id] = notification
        insort(self._order, notification.sort_key)
        if not notification.read:
            self._unread += 1

    def _evict_overflow(self) -> set[str]:
        evicted: set[str] = set()
        while len(self._order) > self._capacity:
            _, notification_id = self._order.pop(0)
            notification = self._entries.pop(notification_id)
            if not notification.read:
                self._unread -= 1
            evicted.add(notification_id)
        return evicted

    def _discard(self, notification_id: str) -> None:
        notification = self._entries.pop(notification_id, None)
        if notification is None:
            return
        self._remove_key(notification.sort_key)
        if not notification.read:
            self._unread -= 1

    def _remove_key(self, key: tuple[datetime, str]) -> None:
        index = bisect_left(self._order, key)
        if index < len(self._order) and self._order[index] == key:
            del self._order[index]

    def _set_read(self, notification_id: str, read: bool) -> bool:
        entry = self._entries.get(notification_id)
        if entry is None or entry.read == read:
            return False
        self._entries[notification_id] = replace(entry, read=read)
        self._unread += -1 if read else 1
        return True

    def _changed(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change()
        except Exception:
            logger.exception("Notification store listener failed")


__all__ = ["DEFAULT_CAPACITY", "MergeResult", "NotificationStore", "StoreSnapshot"]
