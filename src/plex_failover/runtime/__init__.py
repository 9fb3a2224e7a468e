"""Instance runtime adapters and the idempotent instance controller.

Provides:
- InstanceRuntime: inspect/start/stop/exec interface
- DockerCliRuntime: docker CLI implementation
- FakeRuntime: in-memory simulation for tests
- InstanceController: idempotent start/stop of the Plex service
"""

from plex_failover.runtime.base import ExecResult, InstanceRuntime
from plex_failover.runtime.controller import InstanceController
from plex_failover.runtime.docker_cli import DockerCliRuntime
from plex_failover.runtime.errors import (
    RuntimeCallError,
    RuntimeCommandError,
    RuntimeTimeoutError,
    RuntimeUnavailableError,
)
from plex_failover.runtime.fake import FakeInstance, FakeRuntime

__all__ = [
    "DockerCliRuntime",
    "ExecResult",
    "FakeInstance",
    "FakeRuntime",
    "InstanceController",
    "InstanceRuntime",
    "RuntimeCallError",
    "RuntimeCommandError",
    "RuntimeTimeoutError",
    "RuntimeUnavailableError",
]
