"""Connection states reported by a channel subscription."""

from __future__ import annotations

from enum import Enum


class ConnectionState(str, Enum):
    """Lifecycle of one logical subscription to the push channel."""

    IDLE = "idle"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    DEGRADED = "degraded"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


LIVE_CONNECTION_STATES = frozenset(
    {ConnectionState.CONNECTING, ConnectionState.SUBSCRIBED}
)


__all__ = ["ConnectionState", "LIVE_CONNECTION_STATES"]
