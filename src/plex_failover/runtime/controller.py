"""Idempotent start/stop of the Plex service inside an instance.

start(instance):
1. Ensure the container is running (docker start + short settle if not)
2. If Plex is not already detected, run ``<service_script> -u`` and wait
   the settle delay

stop(instance):
- Run ``<service_script> -d`` only if Plex is detected running

The container itself is never stopped: the standby container stays up so
the service can be started quickly.  Failures are logged and reported as
ControlResult.FAILED, never raised; the next tick retries.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from plex_failover.core import ControlResult, Instance, RunState
from plex_failover.runtime.errors import RuntimeCallError

if TYPE_CHECKING:
    from collections.abc import Callable

    from plex_failover.health.evaluator import HealthEvaluator
    from plex_failover.runtime.base import InstanceRuntime

logger = logging.getLogger(__name__)

DEFAULT_CONTAINER_SETTLE_S = 1.0


class InstanceController:
    """Converges an instance's Plex service to running or stopped.

    Args:
        runtime: Instance runtime
        evaluator: Used to detect the Plex process
        service_script: In-container control script (``-u`` start, ``-d`` stop)
        settle_delay_s: Wait after issuing a service start
        container_settle_s: Wait after starting the container itself
        sleep: Sleep function (for testing)
    """

    def __init__(
        self,
        runtime: InstanceRuntime,
        evaluator: HealthEvaluator,
        *,
        service_script: str = "/plex_service.sh",
        settle_delay_s: float = 3.0,
        container_settle_s: float = DEFAULT_CONTAINER_SETTLE_S,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self._runtime = runtime
        self._evaluator = evaluator
        self._service_script = service_script
        self._settle_delay_s = settle_delay_s
        self._container_settle_s = container_settle_s
        self._sleep = sleep or time.sleep

    def start(self, instance: Instance) -> ControlResult:
        """Start Plex in the instance.

        NOOP only when the container was already up and Plex already
        detected.  A cold container start is CHANGED even if the image
        brings Plex up on its own.
        """
        container_started = False
        try:
            if not self._runtime.is_running(instance.name):
                logger.debug("Starting container: %s", instance.name)
                self._runtime.start(instance.name)
                container_started = True
                self._sleep(self._container_settle_s)
        except RuntimeCallError as e:
            logger.warning("Container start failed for %s: %s", instance, e)
            return ControlResult.FAILED

        if self._evaluator.run_state(instance) is RunState.RUNNING:
            if container_started:
                logger.debug("Plex came up with container %s", instance.name)
                return ControlResult.CHANGED
            return ControlResult.NOOP

        logger.debug("Starting Plex in %s via %s -u", instance.name, self._service_script)
        ok = self._service(instance, "-u")
        self._sleep(self._settle_delay_s)
        return ControlResult.CHANGED if ok else ControlResult.FAILED

    def stop(self, instance: Instance) -> ControlResult:
        """Stop Plex in the instance (no-op if not running)."""
        if self._evaluator.run_state(instance) is not RunState.RUNNING:
            return ControlResult.NOOP

        logger.debug("Stopping Plex in %s via %s -d", instance.name, self._service_script)
        ok = self._service(instance, "-d")
        return ControlResult.CHANGED if ok else ControlResult.FAILED

    def _service(self, instance: Instance, flag: str) -> bool:
        try:
            result = self._runtime.exec(instance.name, [self._service_script, flag])
        except RuntimeCallError as e:
            logger.warning("Service command %s failed for %s: %s", flag, instance, e)
            return False
        if not result.ok:
            logger.warning(
                "Service command %s exited %d for %s",
                flag,
                result.returncode,
                instance,
                extra={"stderr": result.stderr.strip()[-500:]},
            )
            return False
        return True
