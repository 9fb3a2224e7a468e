"""Outward notifications and their throttle."""

from plex_failover.notify.notifier import (
    CommandNotifier,
    LogNotifier,
    NotificationError,
    Notifier,
)
from plex_failover.notify.throttle import NotificationThrottle

__all__ = [
    "CommandNotifier",
    "LogNotifier",
    "NotificationError",
    "NotificationThrottle",
    "Notifier",
]
