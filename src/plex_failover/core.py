"""Core types and enums for plex-failover."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Mode(Enum):
    """Operating mode, chosen by the operator."""

    AUTO = "auto"  # Promote/restore based on primary health
    FORCE_PRIMARY = "force_primary"  # Primary up, secondary down
    FORCE_SECONDARY = "force_secondary"  # Secondary up, primary down

    @classmethod
    def parse(cls, raw: str | None) -> Mode:
        """Parse a persisted mode value.

        Whitespace is removed; anything unrecognized (including None) is AUTO.
        """
        if raw is None:
            return cls.AUTO
        value = "".join(raw.split())
        for mode in cls:
            if mode.value == value:
                return mode
        return cls.AUTO


class InstanceRole(Enum):
    """Which side of the redundant pair an instance is."""

    PRIMARY = "primary"
    SECONDARY = "secondary"


class RunState(Enum):
    """Whether the managed service process is detected inside an instance."""

    RUNNING = "running"
    STOPPED = "stopped"


class LogState(Enum):
    """Result of scanning the recent log tail for failure signatures."""

    OK = "ok"
    ERROR = "error"


class HealthVerdict(Enum):
    """Health of the primary instance (the secondary is never evaluated)."""

    HEALTHY = "healthy"
    ERROR = "error"
    STOPPED = "stopped"


class Severity(Enum):
    """Notification severity (maps to notifier icon levels)."""

    NORMAL = "normal"
    WARNING = "warning"
    ALERT = "alert"


class ControlResult(Enum):
    """Outcome of an instance start/stop request."""

    CHANGED = "changed"  # Command issued and succeeded
    NOOP = "noop"  # Already in the desired state
    FAILED = "failed"  # Command issued but failed


@dataclass(frozen=True)
class Instance:
    """One managed service endpoint.

    Only identity lives here; run state is always probed live.
    """

    role: InstanceRole
    name: str

    def __str__(self) -> str:
        return f"{self.role.value}:{self.name}"
