"""In-memory runtime that simulates Plex containers.

Used by tests and ``--dry-run`` style experiments.  It understands just the
commands the supervisor issues inside an instance:

- ``ps -ef`` / ``ps aux`` / ``ps``   process listings
- ``tail -n N PATH``                 log tail
- ``<service_script> -u|-d``         start / stop the Plex service

Every call is appended to ``calls`` so tests can assert exact sequences.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from plex_failover.runtime.base import ExecResult, InstanceRuntime
from plex_failover.runtime.errors import RuntimeCommandError

ALL_PS_FORMATS: tuple[str, ...] = ("-ef", "aux", "")


@dataclass
class FakeInstance:
    """Simulated container state.

    Attributes:
        container_running: Container is up
        service_running: Plex process is up (only possible while container is up)
        logs: {path: lines} files visible inside the container
        ps_formats: ps argument styles this container's ps supports
        service_autostart: Starting the container also starts Plex
        start_fails: Service start command exits non-zero
        stop_fails: Service stop command exits non-zero
        unreachable: Every runtime call raises RuntimeCommandError
    """

    container_running: bool = False
    service_running: bool = False
    logs: dict[str, list[str]] = field(default_factory=dict)
    ps_formats: tuple[str, ...] = ALL_PS_FORMATS
    service_autostart: bool = False
    start_fails: bool = False
    stop_fails: bool = False
    unreachable: bool = False


class FakeRuntime(InstanceRuntime):
    """InstanceRuntime over a dict of FakeInstance objects."""

    def __init__(
        self,
        instances: dict[str, FakeInstance] | None = None,
        *,
        service_script: str = "/plex_service.sh",
        process_name: str = "Plex Media Server",
    ) -> None:
        self.instances: dict[str, FakeInstance] = instances or {}
        self.service_script = service_script
        self.process_name = process_name
        self.calls: list[tuple[str, ...]] = []

    def add(self, name: str, **kwargs: object) -> FakeInstance:
        """Register a simulated instance and return it."""
        inst = FakeInstance(**kwargs)  # type: ignore[arg-type]
        self.instances[name] = inst
        return inst

    def set_log(self, name: str, path: str, lines: list[str]) -> None:
        """Replace the content of a log file inside an instance."""
        self.instances[name].logs[path] = list(lines)

    def _get(self, op: str, name: str) -> FakeInstance:
        inst = self.instances.get(name)
        if inst is None:
            raise RuntimeCommandError(op, name, 1, f"No such container: {name}")
        if inst.unreachable:
            raise RuntimeCommandError(op, name, 1, "runtime unreachable")
        return inst

    def is_running(self, name: str) -> bool:
        self.calls.append(("inspect", name))
        return self._get("inspect", name).container_running

    def start(self, name: str) -> None:
        self.calls.append(("start", name))
        inst = self._get("start", name)
        inst.container_running = True
        if inst.service_autostart:
            inst.service_running = True

    def stop(self, name: str) -> None:
        self.calls.append(("stop", name))
        inst = self._get("stop", name)
        inst.container_running = False
        inst.service_running = False

    def exec(self, name: str, argv: Sequence[str]) -> ExecResult:
        self.calls.append(("exec", name, *argv))
        inst = self._get("exec", name)
        if not inst.container_running:
            return ExecResult(1, stderr=f"container {name} is not running")
        if not argv:
            return ExecResult(127, stderr="empty command")

        prog = argv[0]
        if prog == "ps":
            return self._ps(inst, " ".join(argv[1:]))
        if prog == "tail":
            return self._tail(inst, argv)
        if prog == self.service_script:
            return self._service(inst, argv[1] if len(argv) > 1 else "")
        return ExecResult(127, stderr=f"{prog}: not found")

    def _ps(self, inst: FakeInstance, fmt: str) -> ExecResult:
        if fmt not in inst.ps_formats:
            return ExecResult(1, stderr=f"ps: unrecognized option {fmt!r}")
        lines = ["PID   USER     TIME  COMMAND", "    1 root      0:00 /init"]
        if inst.service_running:
            lines.append(f"  214 plex      1:02 /usr/lib/plexmediaserver/{self.process_name}")
        return ExecResult(0, stdout="\n".join(lines) + "\n")

    def _tail(self, inst: FakeInstance, argv: Sequence[str]) -> ExecResult:
        path = argv[-1]
        count = int(argv[2]) if len(argv) >= 4 and argv[1] == "-n" else 10
        if path not in inst.logs:
            return ExecResult(1, stderr=f"tail: cannot open '{path}': No such file or directory")
        tail = inst.logs[path][-count:]
        return ExecResult(0, stdout="".join(f"{line}\n" for line in tail))

    def _service(self, inst: FakeInstance, flag: str) -> ExecResult:
        if flag == "-u":
            if inst.start_fails:
                return ExecResult(1, stderr="Starting Plex Media Server. . . failed")
            inst.service_running = True
            return ExecResult(0, stdout="Starting Plex Media Server. . . done\n")
        if flag == "-d":
            if inst.stop_fails:
                return ExecResult(1, stderr="Stopping Plex Media Server. . . failed")
            inst.service_running = False
            return ExecResult(0, stdout="Stopping Plex Media Server. . . done\n")
        return ExecResult(2, stderr=f"unknown option {flag!r}")
