"""Seed and resynchronize the store from the recent notifications snapshot."""

from __future__ import annotations

import logging

from notification_center.application.ports import BacklogSource
from notification_center.domain.entities import Notification
from notification_center.domain.errors import BacklogFetchError

from .store import NotificationStore

logger = logging.getLogger(__name__)


class BacklogFetcher:
    """Pull the most recent notifications and merge them into the store.

    Failures are raised as :class:`BacklogFetchError` and never retried here;
    a manual refresh is the recovery path. After :meth:`invalidate` the result
    of any fetch still in flight is discarded when it arrives.
    """

    def __init__(self, source: BacklogSource, store: NotificationStore) -> None:
        self._source = source
        self._store = store
        self._generation = 0

    def invalidate(self) -> None:
        self._generation += 1

    async def fetch(self, limit: int) -> list[Notification]:
        """Fetch up to ``limit`` notifications and merge them; return what was applied."""

        if limit <= 0:
            raise ValueError("Backlog limit must be positive")

        generation = self._generation
        try:
            notifications = list(await self._source.list_recent(limit))
        except BacklogFetchError:
            raise
        except Exception as exc:
            raise BacklogFetchError(f"Could not load recent notifications: {exc}") from exc

        if generation != self._generation:
            logger.debug("Discarding backlog fetched for a closed activation")
            return []

        for notification in notifications:
            self._store.merge(notification)
        logger.debug("Merged %d backlog notifications", len(notifications))
        return notifications


__all__ = ["BacklogFetcher"]
