"""Data API repositories."""

from .notification_repository import NotificationRepository, create_http_client

__all__ = ["NotificationRepository", "create_http_client"]
