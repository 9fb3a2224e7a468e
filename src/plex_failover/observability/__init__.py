"""Observability: supervisor metrics and the /healthz, /metrics endpoints.

Provides:
- FailoverMetrics: counters/gauges rendered as Prometheus text
- build_healthz_body / build_metrics_body: pure endpoint builders
- run_server: background HTTP server
"""

from plex_failover.observability.http_server import HealthHandler, run_server
from plex_failover.observability.live_contract import (
    build_healthz_body,
    build_metrics_body,
    get_start_time,
    reset_start_time,
    set_start_time,
)
from plex_failover.observability.metrics import (
    FailoverMetrics,
    get_failover_metrics,
    reset_failover_metrics,
)

__all__ = [
    "FailoverMetrics",
    "HealthHandler",
    "build_healthz_body",
    "build_metrics_body",
    "get_failover_metrics",
    "get_start_time",
    "reset_failover_metrics",
    "reset_start_time",
    "run_server",
    "set_start_time",
]
