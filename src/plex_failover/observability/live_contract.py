"""Bodies for the supervisor's /healthz and /metrics endpoints.

Kept free of sockets so the payloads can be asserted directly.

/healthz is JSON and answers 200 whenever the process can serve it::

    {"status": "ok", "uptime_s": 12.5, "ticks": 3,
     "last_tick_age_s": 4.0, "last_status": "mode=auto; primary=healthy; ..."}

``last_tick_age_s`` is null until the first tick completes.  /metrics is the
Prometheus text rendered by :class:`FailoverMetrics`.
"""

from __future__ import annotations

import json
import time

from plex_failover.observability.metrics import get_failover_metrics

_start_time: float | None = None


def get_start_time() -> float:
    """Process start time, fixed on first use."""
    global _start_time
    if _start_time is None:
        _start_time = time.time()
    return _start_time


def set_start_time(t: float) -> None:
    global _start_time
    _start_time = t


def reset_start_time() -> None:
    global _start_time
    _start_time = None


def build_healthz_body(now: float | None = None) -> str:
    now = time.time() if now is None else now
    metrics = get_failover_metrics()
    body = {
        "status": "ok",
        "uptime_s": round(now - get_start_time(), 2),
        "ticks": metrics.ticks_total,
        "last_tick_age_s": (
            round(now - metrics.last_tick_ts, 2) if metrics.last_tick_ts else None
        ),
        "last_status": metrics.last_status,
    }
    return json.dumps(body)


def build_metrics_body() -> str:
    lines = get_failover_metrics().to_prometheus_lines()
    return "\n".join(lines) + "\n"
