"""Health evaluation for a Plex instance.

Verdict rules (primary only):
- stopped:  Plex process not detected
- error:    process detected, recent log tail matches a failure signature
- healthy:  otherwise

A missing log file is never evidence of failure: it yields LogState.OK.
Runtime errors while probing are logged and read as "stopped" / "ok".
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from plex_failover.core import HealthVerdict, Instance, LogState, RunState
from plex_failover.env_parse import ConfigError
from plex_failover.runtime.base import InstanceRuntime
from plex_failover.runtime.errors import RuntimeCallError

logger = logging.getLogger(__name__)

# BusyBox and procps disagree on ps flags; the first listing that works wins.
PS_VARIANTS: tuple[tuple[str, ...], ...] = (
    ("ps", "-ef"),
    ("ps", "aux"),
    ("ps",),
)


class HealthEvaluator:
    """Probes process state and log tail of an instance.

    Args:
        runtime: Runtime used to exec probes inside the instance
        process_pattern: Process name to look for (case-insensitive substring)
        log_paths: Ordered candidate log paths; first existing one is read
        error_patterns: Ordered case-insensitive regex failure signatures
        tail_lines: Size of the log window
    """

    def __init__(
        self,
        runtime: InstanceRuntime,
        *,
        process_pattern: str,
        log_paths: Sequence[str],
        error_patterns: Sequence[str],
        tail_lines: int = 200,
    ) -> None:
        self._runtime = runtime
        self._process_re = re.compile(re.escape(process_pattern), re.IGNORECASE)
        self._log_paths = list(log_paths)
        self._tail_lines = tail_lines
        self._signatures: list[tuple[str, re.Pattern[str]]] = []
        for pattern in error_patterns:
            try:
                self._signatures.append((pattern, re.compile(pattern, re.IGNORECASE)))
            except re.error as e:
                raise ConfigError(f"invalid error pattern {pattern!r}: {e}") from e

    @property
    def error_patterns(self) -> list[str]:
        """Configured failure signatures, in match order."""
        return [p for p, _ in self._signatures]

    def run_state(self, instance: Instance) -> RunState:
        """Detect the Plex process inside the instance."""
        for argv in PS_VARIANTS:
            try:
                result = self._runtime.exec(instance.name, argv)
            except RuntimeCallError as e:
                logger.debug("Process probe failed for %s: %s", instance, e)
                return RunState.STOPPED
            if not result.ok:
                continue
            if self._process_re.search(result.stdout):
                return RunState.RUNNING
            return RunState.STOPPED
        logger.debug("No usable process listing in %s", instance)
        return RunState.STOPPED

    def tail_log(self, instance: Instance) -> str | None:
        """Return the recent tail of the first existing log, or None."""
        for path in self._log_paths:
            try:
                result = self._runtime.exec(
                    instance.name, ["tail", "-n", str(self._tail_lines), path]
                )
            except RuntimeCallError as e:
                logger.debug("Log tail failed for %s: %s", instance, e)
                return None
            if result.ok:
                return result.stdout
        return None

    def match_signature(self, text: str) -> str | None:
        """Return the first failure signature found in *text*, if any."""
        for pattern, regex in self._signatures:
            if regex.search(text):
                return pattern
        return None

    def log_state(self, instance: Instance) -> LogState:
        """Scan the log tail for failure signatures."""
        tail = self.tail_log(instance)
        if not tail:
            return LogState.OK
        pattern = self.match_signature(tail)
        if pattern is None:
            return LogState.OK
        logger.debug("%s: matched error pattern: %s", instance, pattern)
        return LogState.ERROR

    def verdict(self, instance: Instance, run_state: RunState) -> HealthVerdict:
        """Combine an already-probed run state with a log scan."""
        if run_state is not RunState.RUNNING:
            return HealthVerdict.STOPPED
        if self.log_state(instance) is LogState.ERROR:
            return HealthVerdict.ERROR
        return HealthVerdict.HEALTHY

    def health(self, instance: Instance) -> HealthVerdict:
        """Full health verdict: process probe, then log scan."""
        return self.verdict(instance, self.run_state(instance))
