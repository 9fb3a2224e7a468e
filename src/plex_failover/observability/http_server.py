"""Background HTTP server for /healthz and /metrics."""

from __future__ import annotations

import logging
import threading
import time
from http.server import BaseHTTPRequestHandler, HTTPServer

from plex_failover.observability.live_contract import (
    build_healthz_body,
    build_metrics_body,
    set_start_time,
)

logger = logging.getLogger(__name__)


class HealthHandler(BaseHTTPRequestHandler):
    """HTTP handler for health checks and metrics.

    Endpoints:
        /healthz - Always 200 if process alive
        /metrics - Prometheus metrics
    """

    def do_GET(self) -> None:
        """Handle GET requests."""
        if self.path == "/healthz":
            self._send(build_healthz_body(), "application/json")
        elif self.path == "/metrics":
            self._send(build_metrics_body(), "text/plain; charset=utf-8")
        else:
            self.send_error(404)

    def _send(self, body: str, content_type: str) -> None:
        payload = body.encode()
        self.send_response(200)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format: str, *args: object) -> None:
        """Route access logs to debug logging."""
        logger.debug("http: " + format, *args)


def run_server(port: int, host: str = "0.0.0.0") -> HTTPServer:
    """Start HTTP server in a background daemon thread."""
    set_start_time(time.time())
    server = HTTPServer((host, port), HealthHandler)
    thread = threading.Thread(target=server.serve_forever, name="metrics-http", daemon=True)
    thread.start()
    logger.info("Metrics endpoint listening", extra={"host": host, "port": port})
    return server
