"""Persisted supervisor state (mode, last notification) and the mode store."""

from plex_failover.state.mode import ModeStore
from plex_failover.state.store import (
    KEY_LAST_NOTIFY,
    KEY_MODE,
    FileStateStore,
    InMemoryStateStore,
    RedisStateStore,
    StateStore,
    StateStoreError,
    build_state_store,
)

__all__ = [
    "KEY_LAST_NOTIFY",
    "KEY_MODE",
    "FileStateStore",
    "InMemoryStateStore",
    "ModeStore",
    "RedisStateStore",
    "StateStore",
    "StateStoreError",
    "build_state_store",
]
