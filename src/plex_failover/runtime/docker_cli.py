"""Docker CLI runtime adapter.

Drives containers through the ``docker`` binary with ``subprocess``:

- is_running: ``docker inspect -f {{.State.Running}} NAME``
- start/stop: ``docker start NAME`` / ``docker stop NAME``
- exec:       ``docker exec NAME ARGV...``

No timeout is applied unless ``timeout_s`` is set; a hung docker call
stalls the current tick.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable, Sequence
from typing import Any

from plex_failover.runtime.base import ExecResult, InstanceRuntime
from plex_failover.runtime.errors import (
    RuntimeCommandError,
    RuntimeTimeoutError,
    RuntimeUnavailableError,
)

logger = logging.getLogger(__name__)


class DockerCliRuntime(InstanceRuntime):
    """InstanceRuntime backed by the docker command line.

    Args:
        docker_bin: Docker executable (name or path)
        timeout_s: Per-call timeout in seconds (None = wait forever)
        runner: subprocess.run-compatible callable (for testing)
    """

    def __init__(
        self,
        docker_bin: str = "docker",
        *,
        timeout_s: float | None = None,
        runner: Callable[..., subprocess.CompletedProcess[str]] | None = None,
    ) -> None:
        self._docker_bin = docker_bin
        self._timeout_s = timeout_s
        self._runner = runner or subprocess.run

    def _run(self, op: str, name: str, args: Sequence[str]) -> subprocess.CompletedProcess[str]:
        cmd = [self._docker_bin, *args]
        kwargs: dict[str, Any] = {"capture_output": True, "text": True, "check": False}
        if self._timeout_s is not None:
            kwargs["timeout"] = self._timeout_s
        try:
            return self._runner(cmd, **kwargs)
        except FileNotFoundError as e:
            raise RuntimeUnavailableError(self._docker_bin) from e
        except PermissionError as e:
            raise RuntimeUnavailableError(self._docker_bin) from e
        except subprocess.TimeoutExpired as e:
            raise RuntimeTimeoutError(op, name, self._timeout_s or 0.0) from e

    def is_running(self, name: str) -> bool:
        """Check container state; a missing container counts as not running."""
        proc = self._run("inspect", name, ["inspect", "-f", "{{.State.Running}}", name])
        if proc.returncode != 0:
            logger.debug(
                "docker inspect failed",
                extra={"instance": name, "returncode": proc.returncode},
            )
            return False
        return proc.stdout.strip() == "true"

    def start(self, name: str) -> None:
        """Start the container."""
        proc = self._run("start", name, ["start", name])
        if proc.returncode != 0:
            raise RuntimeCommandError("start", name, proc.returncode, proc.stderr)

    def stop(self, name: str) -> None:
        """Stop the container."""
        proc = self._run("stop", name, ["stop", name])
        if proc.returncode != 0:
            raise RuntimeCommandError("stop", name, proc.returncode, proc.stderr)

    def exec(self, name: str, argv: Sequence[str]) -> ExecResult:
        """Run argv inside the container.

        A stopped or missing container shows up as a non-zero returncode,
        same as a failing command.
        """
        proc = self._run("exec", name, ["exec", name, *argv])
        return ExecResult(returncode=proc.returncode, stdout=proc.stdout, stderr=proc.stderr)
