"""Supervisor configuration.

Defaults come from ``PLEX_FAILOVER_*`` environment variables; a YAML file
(``--config``) can override any field.  Explicit constructor arguments win
over both.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from plex_failover.env_parse import (
    ConfigError,
    parse_bool,
    parse_csv,
    parse_enum,
    parse_float,
    parse_int,
    parse_str,
)

logger = logging.getLogger(__name__)

# Environment variable names
ENV_PRIMARY = "PLEX_FAILOVER_PRIMARY"
ENV_SECONDARY = "PLEX_FAILOVER_SECONDARY"
ENV_STATE_DIR = "PLEX_FAILOVER_STATE_DIR"
ENV_STATE_BACKEND = "PLEX_FAILOVER_STATE_BACKEND"
ENV_REDIS_URL = "PLEX_FAILOVER_REDIS_URL"
ENV_POLL_SECS = "PLEX_FAILOVER_POLL_SECS"
ENV_WAIT_AFTER_START = "PLEX_FAILOVER_WAIT_AFTER_START"
ENV_HEARTBEAT_SECS = "PLEX_FAILOVER_HEARTBEAT_SECS"
ENV_THROTTLE_SECS = "PLEX_FAILOVER_THROTTLE_SECS"
ENV_LOG_TAIL_LINES = "PLEX_FAILOVER_LOG_TAIL_LINES"
ENV_ERROR_PATTERNS = "PLEX_FAILOVER_ERROR_PATTERNS"
ENV_LOG_PATHS = "PLEX_FAILOVER_LOG_PATHS"
ENV_PROCESS_PATTERN = "PLEX_FAILOVER_PROCESS_PATTERN"
ENV_SERVICE_SCRIPT = "PLEX_FAILOVER_SERVICE_SCRIPT"
ENV_NOTIFY_CMD = "PLEX_FAILOVER_NOTIFY_CMD"
ENV_NOTIFY_ENABLED = "PLEX_FAILOVER_NOTIFY_ENABLED"
ENV_EXEC_TIMEOUT = "PLEX_FAILOVER_EXEC_TIMEOUT"
ENV_DEBUG = "DEBUG"
ENV_LOG_FILE = "PLEX_FAILOVER_LOG_FILE"
ENV_METRICS_PORT = "PLEX_FAILOVER_METRICS_PORT"

# Defaults
DEFAULT_PRIMARY = "Plex-Media-Server"
DEFAULT_SECONDARY = "Plex-Media-Server-Secondary"
DEFAULT_STATE_DIR = "/var/tmp/plex_failover"
DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_POLL_SECS = 15
DEFAULT_WAIT_AFTER_START = 3
DEFAULT_HEARTBEAT_SECS = 15
DEFAULT_THROTTLE_SECS = 30
DEFAULT_LOG_TAIL_LINES = 200
DEFAULT_ERROR_PATTERNS = ["Unable to set up server"]
DEFAULT_LOG_PATHS = [
    # linuxserver.io image
    "/config/Library/Application Support/Plex Media Server/Logs/Plex Media Server.log",
    # official plexinc/pms-docker image
    "/var/lib/plexmediaserver/Library/Application Support/Plex Media Server/Logs/Plex Media Server.log",
]
DEFAULT_PROCESS_PATTERN = "Plex Media Server"
DEFAULT_SERVICE_SCRIPT = "/plex_service.sh"
DEFAULT_NOTIFY_CMD = "/usr/local/emhttp/webGui/scripts/notify"

STATE_BACKENDS = {"file", "redis"}


def _seconds(name: str, default: float) -> float:
    value = parse_float(name, default)
    return default if value is None else value


def _coerce_yaml_value(name: str, type_hint: str, value: Any) -> Any:
    """Check a YAML value against the field's annotation.

    YAML ints are accepted for float fields.  Raises ConfigError on mismatch.
    """
    nullable = type_hint.endswith("| None")
    base = type_hint.split("|")[0].strip()
    if value is None and nullable:
        return None
    if base == "bool" and isinstance(value, bool):
        return value
    if base == "int" and isinstance(value, int) and not isinstance(value, bool):
        return value
    if base == "float" and isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if base == "str" and isinstance(value, str):
        return value
    if base == "list[str]" and isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    raise ConfigError(f"{name} must be {type_hint}, got {type(value).__name__} {value!r}")


@dataclass
class SupervisorConfig:
    """Configuration for the failover supervisor.

    Attributes:
        primary_container: Container name of the primary (env: PLEX_FAILOVER_PRIMARY)
        secondary_container: Container name of the standby (env: PLEX_FAILOVER_SECONDARY)
        state_dir: Directory for mode / last_notify files (env: PLEX_FAILOVER_STATE_DIR)
        state_backend: "file" or "redis" (env: PLEX_FAILOVER_STATE_BACKEND)
        redis_url: Redis URL when state_backend="redis" (env: PLEX_FAILOVER_REDIS_URL)
        poll_interval_s: Seconds between ticks (env: PLEX_FAILOVER_POLL_SECS)
        settle_delay_s: Wait after a service start (env: PLEX_FAILOVER_WAIT_AFTER_START)
        heartbeat_s: Repeat an unchanged status after this long, 0 disables
            (env: PLEX_FAILOVER_HEARTBEAT_SECS)
        throttle_window_s: Minimum spacing between notifications (env: PLEX_FAILOVER_THROTTLE_SECS)
        log_tail_lines: Lines of the Plex log to scan (env: PLEX_FAILOVER_LOG_TAIL_LINES)
        error_patterns: Case-insensitive failure signatures (env: PLEX_FAILOVER_ERROR_PATTERNS, CSV)
        log_paths: Candidate Plex log paths inside the container (env: PLEX_FAILOVER_LOG_PATHS, CSV)
        process_pattern: Process name to look for (env: PLEX_FAILOVER_PROCESS_PATTERN)
        service_script: In-container service control script (env: PLEX_FAILOVER_SERVICE_SCRIPT)
        notify_command: Host notifier executable (env: PLEX_FAILOVER_NOTIFY_CMD)
        notify_enabled: Send notifications at all (env: PLEX_FAILOVER_NOTIFY_ENABLED)
        exec_timeout_s: Timeout for runtime calls, None = no timeout (env: PLEX_FAILOVER_EXEC_TIMEOUT)
        debug: Debug logging (env: DEBUG)
        log_file: Supervisor log file, None = stderr only (env: PLEX_FAILOVER_LOG_FILE)
        metrics_port: Port for /healthz and /metrics, 0 disables (env: PLEX_FAILOVER_METRICS_PORT)
    """

    primary_container: str = field(
        default_factory=lambda: parse_str(ENV_PRIMARY, DEFAULT_PRIMARY)
    )
    secondary_container: str = field(
        default_factory=lambda: parse_str(ENV_SECONDARY, DEFAULT_SECONDARY)
    )
    state_dir: str = field(default_factory=lambda: parse_str(ENV_STATE_DIR, DEFAULT_STATE_DIR))
    state_backend: str = field(
        default_factory=lambda: parse_enum(ENV_STATE_BACKEND, STATE_BACKENDS, "file") or "file"
    )
    redis_url: str = field(default_factory=lambda: parse_str(ENV_REDIS_URL, DEFAULT_REDIS_URL))
    poll_interval_s: float = field(
        default_factory=lambda: _seconds(ENV_POLL_SECS, DEFAULT_POLL_SECS)
    )
    settle_delay_s: float = field(
        default_factory=lambda: _seconds(ENV_WAIT_AFTER_START, DEFAULT_WAIT_AFTER_START)
    )
    heartbeat_s: float = field(
        default_factory=lambda: _seconds(ENV_HEARTBEAT_SECS, DEFAULT_HEARTBEAT_SECS)
    )
    throttle_window_s: float = field(
        default_factory=lambda: _seconds(ENV_THROTTLE_SECS, DEFAULT_THROTTLE_SECS)
    )
    log_tail_lines: int = field(
        default_factory=lambda: parse_int(ENV_LOG_TAIL_LINES, DEFAULT_LOG_TAIL_LINES, min_value=1)
        or DEFAULT_LOG_TAIL_LINES
    )
    error_patterns: list[str] = field(
        default_factory=lambda: parse_csv(ENV_ERROR_PATTERNS, DEFAULT_ERROR_PATTERNS)
    )
    log_paths: list[str] = field(
        default_factory=lambda: parse_csv(ENV_LOG_PATHS, DEFAULT_LOG_PATHS)
    )
    process_pattern: str = field(
        default_factory=lambda: parse_str(ENV_PROCESS_PATTERN, DEFAULT_PROCESS_PATTERN)
    )
    service_script: str = field(
        default_factory=lambda: parse_str(ENV_SERVICE_SCRIPT, DEFAULT_SERVICE_SCRIPT)
    )
    notify_command: str = field(
        default_factory=lambda: parse_str(ENV_NOTIFY_CMD, DEFAULT_NOTIFY_CMD)
    )
    notify_enabled: bool = field(default_factory=lambda: parse_bool(ENV_NOTIFY_ENABLED, True))
    exec_timeout_s: float | None = field(default_factory=lambda: parse_float(ENV_EXEC_TIMEOUT))
    debug: bool = field(default_factory=lambda: parse_bool(ENV_DEBUG, False, strict=False))
    log_file: str | None = field(
        default_factory=lambda: parse_str(ENV_LOG_FILE, "") or None
    )
    metrics_port: int = field(
        default_factory=lambda: parse_int(ENV_METRICS_PORT, 0, min_value=0) or 0
    )

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.primary_container == self.secondary_container:
            msg = f"primary and secondary container must differ (both {self.primary_container!r})"
            raise ConfigError(msg)
        if self.state_backend not in STATE_BACKENDS:
            msg = f"state_backend must be one of {sorted(STATE_BACKENDS)}, got {self.state_backend!r}"
            raise ConfigError(msg)
        if self.poll_interval_s <= 0:
            msg = f"poll_interval_s ({self.poll_interval_s}) must be > 0"
            raise ConfigError(msg)
        for name in ("settle_delay_s", "heartbeat_s", "throttle_window_s"):
            if getattr(self, name) < 0:
                msg = f"{name} ({getattr(self, name)}) must be >= 0"
                raise ConfigError(msg)
        if self.log_tail_lines < 1:
            msg = f"log_tail_lines ({self.log_tail_lines}) must be >= 1"
            raise ConfigError(msg)
        if not self.log_paths:
            raise ConfigError("log_paths must not be empty")
        if self.exec_timeout_s is not None and self.exec_timeout_s <= 0:
            msg = f"exec_timeout_s ({self.exec_timeout_s}) must be > 0"
            raise ConfigError(msg)
        if self.heartbeat_s and self.heartbeat_s < self.poll_interval_s:
            logger.warning(
                "heartbeat_s is shorter than poll_interval_s; every tick will emit",
                extra={"heartbeat_s": self.heartbeat_s, "poll_interval_s": self.poll_interval_s},
            )

    @classmethod
    def from_yaml(cls, path: str | Path, **overrides: Any) -> SupervisorConfig:
        """Load config from a YAML mapping, env defaults filling the gaps.

        Raises:
            ConfigError: On unreadable or invalid YAML, unknown keys, or
                values of the wrong type.
        """
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"cannot load config {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"config {path} must be a mapping, got {type(data).__name__}")

        hints = {f.name: str(f.type) for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - set(hints))
        if unknown:
            raise ConfigError(f"unknown config keys in {path}: {unknown}")
        try:
            data = {k: _coerce_yaml_value(k, hints[k], v) for k, v in data.items()}
        except ConfigError as e:
            raise ConfigError(f"invalid value in {path}: {e}") from e
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**data)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return dataclasses.asdict(self)
