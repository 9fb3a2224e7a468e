"""Instance runtime interface.

The supervisor needs exactly four primitives from whatever hosts the two
Plex instances: inspect, start, stop and exec.  Anything offering those
semantics (docker, podman, a fake) can be plugged in.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class ExecResult:
    """Result of a command executed inside an instance."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        """True when the command exited 0."""
        return self.returncode == 0


class InstanceRuntime(ABC):
    """Abstract base class for instance runtimes.

    Methods raise :class:`~plex_failover.runtime.errors.RuntimeCallError`
    subclasses when the runtime itself cannot be reached.  A command that
    runs but exits non-zero inside the instance is reported through
    :class:`ExecResult`, not raised.
    """

    @abstractmethod
    def is_running(self, name: str) -> bool:
        """Check if the named instance (container) is running."""
        ...

    @abstractmethod
    def start(self, name: str) -> None:
        """Start the named instance."""
        ...

    @abstractmethod
    def stop(self, name: str) -> None:
        """Stop the named instance."""
        ...

    @abstractmethod
    def exec(self, name: str, argv: Sequence[str]) -> ExecResult:
        """Run *argv* inside the named instance and capture its output."""
        ...
