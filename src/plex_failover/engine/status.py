"""Change-only + heartbeat status emission.

A status line is emitted when it differs from the previous one, or when
the heartbeat interval has passed since the last emission.  Repeats are
tagged ``[HEARTBEAT]`` so they are easy to filter.  heartbeat_s=0 turns
heartbeats off (changes only).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable  # noqa: TC003 - used at runtime in __init__
from enum import Enum

status_logger = logging.getLogger("plex_failover.status")

HEARTBEAT_TAG = "[HEARTBEAT]"


class EmissionKind(Enum):
    """Why a status line was emitted."""

    CHANGE = "change"
    HEARTBEAT = "heartbeat"


class StatusEmitter:
    """Decides whether a status snapshot is worth writing out.

    Args:
        heartbeat_s: Repeat interval for unchanged status (0 disables)
        clock: Time source in seconds (for testing)
        sink: Receives emitted lines (default: INFO on plex_failover.status)
    """

    def __init__(
        self,
        heartbeat_s: float,
        *,
        clock: Callable[[], float] | None = None,
        sink: Callable[[str], None] | None = None,
    ) -> None:
        self.heartbeat_s = heartbeat_s
        self._clock = clock or time.time
        self._sink = sink or status_logger.info
        self._last_status = ""
        self._last_emit_ts = 0.0

    @property
    def last_status(self) -> str:
        """Most recently emitted snapshot ("" before the first emission)."""
        return self._last_status

    def offer(self, snapshot: str) -> EmissionKind | None:
        """Emit *snapshot* if it changed or a heartbeat is due."""
        now = self._clock()
        changed = snapshot != self._last_status
        heartbeat_due = self.heartbeat_s > 0 and now - self._last_emit_ts >= self.heartbeat_s
        if not changed and not heartbeat_due:
            return None

        if changed:
            kind = EmissionKind.CHANGE
            self._sink(snapshot)
        else:
            kind = EmissionKind.HEARTBEAT
            self._sink(f"{HEARTBEAT_TAG} {snapshot}")
        self._last_status = snapshot
        self._last_emit_ts = now
        return kind
