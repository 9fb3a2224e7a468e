"""Notification throttle.

Enforces a minimum spacing between delivered notifications:
- can_notify(): True if at least ``window_s`` passed since the last one
- mark_notified(): record "now" as the last notification

The timestamp lives in the state store (key ``last_notify``, epoch
seconds) so the throttle survives supervisor restarts.  A missing or
garbled timestamp counts as "never notified".
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable  # noqa: TC003 - used at runtime in __init__

from plex_failover.state.store import KEY_LAST_NOTIFY, StateStore, StateStoreError

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_S = 30.0


class NotificationThrottle:
    """Persisted cooldown between outward notifications.

    Attributes:
        window_s: Minimum seconds between delivered notifications.
    """

    def __init__(
        self,
        store: StateStore,
        window_s: float = DEFAULT_WINDOW_S,
        *,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._store = store
        self.window_s = window_s
        self._clock = clock or time.time

    def last_notified(self) -> int:
        """Epoch seconds of the last notification (0 if never / unreadable)."""
        try:
            raw = self._store.get(KEY_LAST_NOTIFY)
        except StateStoreError as e:
            logger.warning("Cannot read last notification time: %s", e)
            return 0
        if not raw:
            return 0
        try:
            return int(float(raw))
        except ValueError:
            logger.debug("Ignoring garbled last_notify value %r", raw)
            return 0

    def can_notify(self) -> bool:
        """Check if the throttle window has elapsed."""
        elapsed = int(self._clock()) - self.last_notified()
        return elapsed >= self.window_s

    def remaining_s(self) -> float:
        """Seconds until the next notification is allowed (0 if allowed now)."""
        elapsed = int(self._clock()) - self.last_notified()
        return max(0.0, self.window_s - elapsed)

    def mark_notified(self) -> None:
        """Record now as the last notification time."""
        try:
            self._store.set(KEY_LAST_NOTIFY, str(int(self._clock())))
        except StateStoreError as e:
            logger.warning("Cannot persist last notification time: %s", e)
