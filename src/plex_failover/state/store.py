"""Persisted supervisor state.

A tiny key -> string store.  Keys in use:

- ``mode``         operating mode (written by the operator command)
- ``last_notify``  epoch seconds of the last delivered notification

Backends:
- FileStateStore: one text file per key under the state directory
  (``/var/tmp/plex_failover/mode`` etc.), compatible with shell tooling
- RedisStateStore: one Redis hash, for hosts that already run Redis
- InMemoryStateStore: tests
"""

from __future__ import annotations

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

import redis

if TYPE_CHECKING:
    from collections.abc import Iterable

    from plex_failover.config import SupervisorConfig

logger = logging.getLogger(__name__)

KEY_MODE = "mode"
KEY_LAST_NOTIFY = "last_notify"

DEFAULT_REDIS_HASH = "plex_failover:state"


class StateStoreError(Exception):
    """State could not be read, written, or initialized."""


class StateStore(ABC):
    """Abstract key/value store for supervisor state."""

    @abstractmethod
    def ensure(self) -> None:
        """Prepare the backend (create directory, check connection).

        Raises:
            StateStoreError: If the store cannot be initialized. Fatal at startup.
        """
        ...

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent.

        Raises:
            StateStoreError: On backend read failure.
        """
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value (last write wins)."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key if present."""
        ...


class InMemoryStateStore(StateStore):
    """Dict-backed store."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    def ensure(self) -> None:
        pass

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class FileStateStore(StateStore):
    """One file per key in a state directory.

    Writes go through a temp file + rename so a reader never sees a
    half-written value.
    """

    def __init__(self, state_dir: str | Path) -> None:
        self._dir = Path(state_dir)

    @property
    def state_dir(self) -> Path:
        """Directory holding the state files."""
        return self._dir

    def path_for(self, key: str) -> Path:
        """File path backing *key*."""
        if not key or "/" in key or key.startswith("."):
            raise ValueError(f"invalid state key: {key!r}")
        return self._dir / key

    def ensure(self) -> None:
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StateStoreError(f"cannot create state directory {self._dir}: {e}") from e
        if not os.access(self._dir, os.W_OK):
            raise StateStoreError(f"state directory {self._dir} is not writable")

    def get(self, key: str) -> str | None:
        try:
            return self.path_for(key).read_text().strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StateStoreError(f"cannot read {self.path_for(key)}: {e}") from e

    def set(self, key: str, value: str) -> None:
        target = self.path_for(key)
        try:
            fd, tmp = tempfile.mkstemp(dir=self._dir, prefix=f".{key}.")
        except OSError as e:
            raise StateStoreError(f"cannot write {target}: {e}") from e
        try:
            with os.fdopen(fd, "w") as f:
                f.write(f"{value}\n")
            os.replace(tmp, target)
        except OSError as e:
            Path(tmp).unlink(missing_ok=True)
            raise StateStoreError(f"cannot write {target}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self.path_for(key).unlink(missing_ok=True)
        except OSError as e:
            raise StateStoreError(f"cannot delete {self.path_for(key)}: {e}") from e

    def touch(self, keys: Iterable[str]) -> None:
        """Create empty files for *keys* that do not exist yet."""
        for key in keys:
            path = self.path_for(key)
            if not path.exists():
                try:
                    path.touch()
                except OSError as e:
                    raise StateStoreError(f"cannot create {path}: {e}") from e


class RedisStateStore(StateStore):
    """State kept in a single Redis hash.

    Usage:
        store = RedisStateStore.from_url("redis://localhost:6379/0")
        store.ensure()  # ping
    """

    def __init__(self, client: redis.Redis, hash_key: str = DEFAULT_REDIS_HASH) -> None:
        self._redis = client
        self._hash_key = hash_key

    @classmethod
    def from_url(cls, url: str, hash_key: str = DEFAULT_REDIS_HASH) -> RedisStateStore:
        """Build a store from a Redis URL (values decoded as str)."""
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=5.0,
            socket_connect_timeout=5.0,
        )
        return cls(client, hash_key)

    def ensure(self) -> None:
        try:
            self._redis.ping()
        except redis.RedisError as e:
            raise StateStoreError(f"cannot reach Redis state store: {e}") from e
        logger.info("Connected to Redis state store", extra={"hash_key": self._hash_key})

    def get(self, key: str) -> str | None:
        try:
            value = self._redis.hget(self._hash_key, key)
        except redis.RedisError as e:
            raise StateStoreError(f"cannot read {key} from Redis: {e}") from e
        if value is None:
            return None
        if isinstance(value, bytes):
            value = value.decode()
        return str(value).strip()

    def set(self, key: str, value: str) -> None:
        try:
            self._redis.hset(self._hash_key, key, value)
        except redis.RedisError as e:
            raise StateStoreError(f"cannot write {key} to Redis: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._redis.hdel(self._hash_key, key)
        except redis.RedisError as e:
            raise StateStoreError(f"cannot delete {key} from Redis: {e}") from e


def build_state_store(config: SupervisorConfig) -> StateStore:
    """Create the state store selected by ``config.state_backend``."""
    if config.state_backend == "redis":
        return RedisStateStore.from_url(config.redis_url)
    return FileStateStore(config.state_dir)
