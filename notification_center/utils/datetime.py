"""Timestamp helpers for notifications shown in the dashboard timezone."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone, tzinfo
from functools import lru_cache

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from notification_center.config import get_settings

FALLBACK_TIMEZONE = "Europe/London"

_UTC_OFFSET = re.compile(r"^(?:utc|gmt)\s*([+-])(\d{1,2})(?::?(\d{2}))?$", re.IGNORECASE)


def resolve_timezone(name: str | None) -> tzinfo:
    """Turn an IANA zone name or a ``UTC+hh:mm`` offset into a ``tzinfo``.

    Empty or unknown names resolve to ``Europe/London``.
    """

    name = (name or "").strip()
    match = _UTC_OFFSET.match(name)
    if match:
        sign, hours, minutes = match.groups()
        offset = timedelta(hours=int(hours), minutes=int(minutes or 0))
        return timezone(-offset if sign == "-" else offset)
    try:
        return ZoneInfo(name or FALLBACK_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo(FALLBACK_TIMEZONE)


@lru_cache(maxsize=1)
def display_timezone() -> tzinfo:
    """Return the zone configured by ``NOTIFICATIONS_APP_TIMEZONE``."""

    return resolve_timezone(get_settings().app_timezone)


def localize(value: datetime | None) -> datetime | None:
    """Express ``value`` in the display timezone; naive values are taken as local."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=display_timezone())
    return value.astimezone(display_timezone())


def format_notification_time(value: datetime | None) -> str:
    """Render ``value`` the way the notification dropdown shows it (``Jan 5, 3:04 PM``)."""

    local = localize(value)
    if local is None:
        return ""
    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"
    return f"{local:%b} {local.day}, {hour}:{local:%M} {meridiem}"
