"""Runtime exception hierarchy.

Raised by instance runtime adapters; callers (controller, health evaluator)
treat every one of them as "no state change observed" and rely on the next
tick to re-converge.

Exception hierarchy:
- RuntimeCallError (base)
  - RuntimeCommandError (runtime command exited non-zero)
  - RuntimeTimeoutError (runtime command exceeded its timeout)
  - RuntimeUnavailableError (runtime binary missing / not executable)
"""

from __future__ import annotations


class RuntimeCallError(Exception):
    """Base exception for all instance runtime errors."""

    pass


class RuntimeCommandError(RuntimeCallError):
    """Runtime command exited with a non-zero status.

    Attributes:
        op: Operation that failed (inspect, start, stop, exec)
        instance: Container name
        returncode: Exit status of the command
        output: Captured stderr/stdout (trimmed)
    """

    def __init__(self, op: str, instance: str, returncode: int, output: str = "") -> None:
        self.op = op
        self.instance = instance
        self.returncode = returncode
        self.output = output.strip()
        msg = f"{op} {instance} failed with exit code {returncode}"
        if self.output:
            msg = f"{msg}: {self.output}"
        super().__init__(msg)


class RuntimeTimeoutError(RuntimeCallError):
    """Runtime command did not finish in time.

    Attributes:
        op: Operation that timed out
        instance: Container name
        timeout_s: Timeout in seconds
    """

    def __init__(self, op: str, instance: str, timeout_s: float) -> None:
        self.op = op
        self.instance = instance
        self.timeout_s = timeout_s
        super().__init__(f"{op} {instance} timed out after {timeout_s}s")


class RuntimeUnavailableError(RuntimeCallError):
    """The runtime binary could not be executed at all."""

    def __init__(self, binary: str) -> None:
        self.binary = binary
        super().__init__(f"runtime binary not available: {binary}")
