"""Mode store: the operator-controlled operating mode.

The supervisor only reads the mode (every tick, so a change applies within
one poll interval).  The ``mode`` CLI command writes it.  Anything unreadable
or unrecognized is AUTO.
"""

from __future__ import annotations

import logging

from plex_failover.core import Mode
from plex_failover.state.store import KEY_MODE, StateStore, StateStoreError

logger = logging.getLogger(__name__)


class ModeStore:
    """Reads/writes the mode key of a StateStore."""

    def __init__(self, store: StateStore) -> None:
        self._store = store

    def get(self) -> Mode:
        """Current mode; AUTO on read failure or unrecognized value."""
        try:
            raw = self._store.get(KEY_MODE)
        except StateStoreError as e:
            logger.warning("Cannot read mode, assuming auto: %s", e)
            return Mode.AUTO
        mode = Mode.parse(raw)
        if raw and mode.value != "".join(raw.split()):
            logger.debug("Unrecognized mode %r, treating as auto", raw)
        return mode

    def set(self, mode: Mode) -> None:
        """Persist a new mode."""
        self._store.set(KEY_MODE, mode.value)
        logger.info("Mode set", extra={"mode": mode.value})

    def ensure_default(self) -> Mode:
        """Write AUTO if no mode is stored yet; return the effective mode."""
        if self._store.get(KEY_MODE) is None:
            self._store.set(KEY_MODE, Mode.AUTO.value)
            return Mode.AUTO
        return self.get()
