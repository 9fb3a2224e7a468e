"""Notification transports.

The supervisor hands (subject, description, severity) to a Notifier and
never waits for or retries delivery.

- CommandNotifier: Unraid webGui ``notify`` script
  (``notify -e "Plex Failover" -s SUBJECT -d DESCRIPTION -i SEVERITY``)
- LogNotifier: writes notifications to the log only
"""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from plex_failover.core import Severity

logger = logging.getLogger(__name__)

DEFAULT_EVENT = "Plex Failover"
DEFAULT_TIMEOUT_S = 10.0


class NotificationError(Exception):
    """Notification could not be delivered."""


class Notifier(ABC):
    """Abstract notification transport."""

    @abstractmethod
    def send(self, subject: str, description: str, severity: Severity) -> None:
        """Deliver a notification.

        Raises:
            NotificationError: If delivery failed.
        """
        ...


class LogNotifier(Notifier):
    """Notifier that only logs."""

    def send(self, subject: str, description: str, severity: Severity) -> None:
        level = logging.INFO if severity is Severity.NORMAL else logging.WARNING
        logger.log(level, "NOTIFY [%s] %s: %s", severity.value, subject, description)


class CommandNotifier(Notifier):
    """Notifier that runs the host's notify script.

    Args:
        command: Path to the notify executable
        event: Event/source name shown by the host UI
        timeout_s: Timeout for the notify call
        runner: subprocess.run-compatible callable (for testing)
    """

    def __init__(
        self,
        command: str,
        *,
        event: str = DEFAULT_EVENT,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        runner: Callable[..., subprocess.CompletedProcess[Any]] | None = None,
    ) -> None:
        self._command = command
        self._event = event
        self._timeout_s = timeout_s
        self._runner = runner or subprocess.run

    def build_argv(self, subject: str, description: str, severity: Severity) -> list[str]:
        """Command line for one notification."""
        return [
            self._command,
            "-e",
            self._event,
            "-s",
            subject,
            "-d",
            description,
            "-i",
            severity.value,
        ]

    def send(self, subject: str, description: str, severity: Severity) -> None:
        argv = self.build_argv(subject, description, severity)
        try:
            proc = self._runner(
                argv,
                capture_output=True,
                text=True,
                timeout=self._timeout_s,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise NotificationError(f"notify command failed: {e}") from e
        if proc.returncode != 0:
            raise NotificationError(f"notify command exited {proc.returncode}")
