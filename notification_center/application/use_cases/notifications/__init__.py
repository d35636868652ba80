"""Components that keep the local notification list in sync with the server."""

from .backlog import BacklogFetcher
from .center import (
    ALERT_BACKLOG,
    ALERT_MARK_READ,
    ALERT_UNAVAILABLE,
    Alert,
    NotificationCenter,
    NotificationSnapshot,
    NotificationView,
)
from .liveness import LivenessMonitor
from .reconnect import ReconnectPolicy
from .store import MergeResult, NotificationStore, StoreSnapshot
from .subscription import ChannelSubscription

__all__ = [
    "ALERT_BACKLOG",
    "ALERT_MARK_READ",
    "ALERT_UNAVAILABLE",
    "Alert",
    "BacklogFetcher",
    "ChannelSubscription",
    "LivenessMonitor",
    "MergeResult",
    "NotificationCenter",
    "NotificationSnapshot",
    "NotificationStore",
    "NotificationView",
    "ReconnectPolicy",
    "StoreSnapshot",
]
