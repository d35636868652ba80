"""Notification reads and writes against the hosted data API."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from notification_center.config import Settings
from notification_center.domain.entities import Notification
from notification_center.domain.errors import (
    BacklogFetchError,
    NotificationNotFoundError,
    ReadMutationError,
)
from notification_center.schemas import parse_notification

logger = logging.getLogger(__name__)

REST_PREFIX = "/rest/v1"
NOTIFICATIONS_ENDPOINT = "/notifications"


def create_http_client(settings: Settings) -> httpx.AsyncClient:
    """Return an ``AsyncClient`` bound to the data API REST root."""

    headers: dict[str, str] = {"Accept": "application/json"}
    if settings.api_key:
        headers["apikey"] = settings.api_key
        headers["Authorization"] = f"Bearer {settings.api_key}"
    return httpx.AsyncClient(
        base_url=settings.api_url.rstrip("/") + REST_PREFIX,
        headers=headers,
        timeout=httpx.Timeout(settings.http_timeout),
    )


class NotificationRepository:
    """Backlog query and read mutation for one member's notifications."""

    def __init__(self, client: httpx.AsyncClient, *, member_id: str) -> None:
        self.client = client
        self.member_id = member_id

    async def list_recent(self, limit: int) -> Sequence[Notification]:
        params = {
            "select": "*",
            "member_id": f"eq.{self.member_id}",
            "order": "created_at.desc,id.desc",
            "limit": str(limit),
        }
        try:
            response = await self.client.get(NOTIFICATIONS_ENDPOINT, params=params)
            response.raise_for_status()
            rows = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "HTTP error fetching notifications from %r: %s",
                str(exc.request.url),
                exc.response.text,
            )
            raise BacklogFetchError(
                f"Data API responded with status {exc.response.status_code}"
            ) from exc
        except httpx.RequestError as exc:
            logger.error("Network error fetching notifications from %r", str(exc.request.url))
            raise BacklogFetchError("Data API unreachable") from exc
        except ValueError as exc:
            raise BacklogFetchError("Data API returned invalid JSON") from exc

        if not isinstance(rows, list):
            raise BacklogFetchError("Data API returned an unexpected payload")
        return _parse_rows(rows)

    async def mark_read(self, notification_id: str) -> None:
        try:
            response = await self.client.patch(
                NOTIFICATIONS_ENDPOINT,
                params={"id": f"eq.{notification_id}"},
                json={"is_read": True},
                headers={"Prefer": "return=representation"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == httpx.codes.NOT_FOUND:
                raise NotificationNotFoundError(notification_id) from exc
            logger.error(
                "HTTP error marking notification %s as read: %s",
                notification_id,
                exc.response.text,
            )
            raise ReadMutationError(notification_id) from exc
        except httpx.RequestError as exc:
            logger.error("Network error marking notification %s as read", notification_id)
            raise ReadMutationError(notification_id) from exc

        try:
            updated = response.json()
        except ValueError:
            return
        if isinstance(updated, list) and not updated:
            raise NotificationNotFoundError(notification_id)


def _parse_rows(rows: list[Any]) -> list[Notification]:
    notifications: list[Notification] = []
    for row in rows:
        try:
            notifications.append(parse_notification(row))
        except ValueError as exc:
            logger.warning("Skipping malformed notification row: %s", exc)
    return notifications


__all__ = ["NotificationRepository", "create_http_client"]
