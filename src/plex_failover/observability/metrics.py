"""Supervisor metrics for the Prometheus /metrics endpoint.

Design:
- Pure dataclass singleton, updated by the engine after every tick
- Single writer (the supervisor loop); the HTTP thread only renders
- One-hot gauges for mode, primary health and run states
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from plex_failover.core import HealthVerdict, Mode, RunState

# Metric names (stable contract)
METRIC_UP = "plex_failover_up"
METRIC_TICKS = "plex_failover_ticks_total"
METRIC_TICK_ERRORS = "plex_failover_tick_errors_total"
METRIC_ACTIONS = "plex_failover_actions_total"
METRIC_NOTIFICATIONS = "plex_failover_notifications_total"
METRIC_EMISSIONS = "plex_failover_status_emissions_total"
METRIC_MODE = "plex_failover_mode"
METRIC_PRIMARY_HEALTH = "plex_failover_primary_health"
METRIC_INSTANCE_RUNNING = "plex_failover_instance_running"
METRIC_LAST_TICK = "plex_failover_last_tick_timestamp_seconds"

NOTIFY_SENT = "sent"
NOTIFY_THROTTLED = "throttled"
NOTIFY_FAILED = "failed"


@dataclass
class FailoverMetrics:
    """Metrics collector for the failover supervisor.

    Attributes:
        ticks_total: Completed ticks
        tick_errors_total: Ticks aborted by an unexpected exception
        actions: {(action, result): count}
        notifications: {outcome: count} with outcome sent/throttled/failed
        emissions: {kind: count} for change/heartbeat status lines
        mode: Mode seen on the last tick
        primary_health: Primary verdict on the last tick
        run_states: {role: RunState} after the last tick
        last_status: Last status snapshot
        last_tick_ts: Epoch seconds of the last completed tick
    """

    ticks_total: int = 0
    tick_errors_total: int = 0
    actions: dict[tuple[str, str], int] = field(default_factory=dict)
    notifications: dict[str, int] = field(default_factory=dict)
    emissions: dict[str, int] = field(default_factory=dict)
    mode: Mode | None = None
    primary_health: HealthVerdict | None = None
    run_states: dict[str, RunState] = field(default_factory=dict)
    last_status: str = ""
    last_tick_ts: float = 0.0

    def record_tick(
        self,
        *,
        mode: Mode,
        health: HealthVerdict,
        run_states: dict[str, RunState],
        status: str,
        ts: float | None = None,
    ) -> None:
        """Record the outcome of a completed tick."""
        self.ticks_total += 1
        self.mode = mode
        self.primary_health = health
        self.run_states = dict(run_states)
        self.last_status = status
        self.last_tick_ts = time.time() if ts is None else ts

    def record_action(self, action: str, result: str) -> None:
        """Record an executed (non-noop) action."""
        key = (action, result)
        self.actions[key] = self.actions.get(key, 0) + 1

    def record_notification(self, outcome: str) -> None:
        """Record a notification outcome (sent/throttled/failed)."""
        self.notifications[outcome] = self.notifications.get(outcome, 0) + 1

    def record_emission(self, kind: str) -> None:
        """Record an emitted status line."""
        self.emissions[kind] = self.emissions.get(kind, 0) + 1

    def record_tick_error(self) -> None:
        """Record a tick aborted by an exception."""
        self.tick_errors_total += 1

    def to_prometheus_lines(self) -> list[str]:
        """Generate Prometheus text format lines."""
        lines: list[str] = [
            f"# HELP {METRIC_UP} Supervisor process is up",
            f"# TYPE {METRIC_UP} gauge",
            f"{METRIC_UP} 1",
            f"# HELP {METRIC_TICKS} Completed supervisor ticks",
            f"# TYPE {METRIC_TICKS} counter",
            f"{METRIC_TICKS} {self.ticks_total}",
            f"# HELP {METRIC_TICK_ERRORS} Ticks aborted by an unexpected error",
            f"# TYPE {METRIC_TICK_ERRORS} counter",
            f"{METRIC_TICK_ERRORS} {self.tick_errors_total}",
            f"# HELP {METRIC_LAST_TICK} Epoch seconds of the last completed tick",
            f"# TYPE {METRIC_LAST_TICK} gauge",
            f"{METRIC_LAST_TICK} {self.last_tick_ts:.0f}",
        ]

        lines.extend(
            [
                f"# HELP {METRIC_ACTIONS} Start/stop actions by label and result",
                f"# TYPE {METRIC_ACTIONS} counter",
            ]
        )
        if self.actions:
            for (action, result), count in sorted(self.actions.items()):
                lines.append(f'{METRIC_ACTIONS}{{action="{action}",result="{result}"}} {count}')
        else:
            lines.append(f'{METRIC_ACTIONS}{{action="none",result="none"}} 0')

        lines.extend(
            [
                f"# HELP {METRIC_NOTIFICATIONS} Notifications by outcome",
                f"# TYPE {METRIC_NOTIFICATIONS} counter",
            ]
        )
        for outcome in (NOTIFY_SENT, NOTIFY_THROTTLED, NOTIFY_FAILED):
            count = self.notifications.get(outcome, 0)
            lines.append(f'{METRIC_NOTIFICATIONS}{{outcome="{outcome}"}} {count}')

        lines.extend(
            [
                f"# HELP {METRIC_EMISSIONS} Status lines emitted by kind",
                f"# TYPE {METRIC_EMISSIONS} counter",
            ]
        )
        for kind in ("change", "heartbeat"):
            lines.append(f'{METRIC_EMISSIONS}{{kind="{kind}"}} {self.emissions.get(kind, 0)}')

        lines.extend(
            [
                f"# HELP {METRIC_MODE} Current mode (1=current, 0=other)",
                f"# TYPE {METRIC_MODE} gauge",
            ]
        )
        for mode in Mode:
            value = 1 if mode == self.mode else 0
            lines.append(f'{METRIC_MODE}{{mode="{mode.value}"}} {value}')

        lines.extend(
            [
                f"# HELP {METRIC_PRIMARY_HEALTH} Primary health verdict (1=current, 0=other)",
                f"# TYPE {METRIC_PRIMARY_HEALTH} gauge",
            ]
        )
        for verdict in HealthVerdict:
            value = 1 if verdict == self.primary_health else 0
            lines.append(f'{METRIC_PRIMARY_HEALTH}{{verdict="{verdict.value}"}} {value}')

        lines.extend(
            [
                f"# HELP {METRIC_INSTANCE_RUNNING} Plex process detected in instance",
                f"# TYPE {METRIC_INSTANCE_RUNNING} gauge",
            ]
        )
        for role in ("primary", "secondary"):
            value = 1 if self.run_states.get(role) is RunState.RUNNING else 0
            lines.append(f'{METRIC_INSTANCE_RUNNING}{{role="{role}"}} {value}')

        return lines


# Global singleton
_metrics: FailoverMetrics | None = None


def get_failover_metrics() -> FailoverMetrics:
    """Get or create global supervisor metrics instance."""
    global _metrics  # noqa: PLW0603
    if _metrics is None:
        _metrics = FailoverMetrics()
    return _metrics


def reset_failover_metrics() -> None:
    """Reset supervisor metrics (for testing)."""
    global _metrics  # noqa: PLW0603
    _metrics = None
