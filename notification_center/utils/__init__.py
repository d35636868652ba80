"""Utility helpers for reusable functionality."""

from .datetime import (
    display_timezone,
    format_notification_time,
    localize,
    resolve_timezone,
)

__all__ = [
    "display_timezone",
    "format_notification_time",
    "localize",
    "resolve_timezone",
]
