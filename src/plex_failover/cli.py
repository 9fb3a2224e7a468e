"""Project CLI entrypoint.

Provides CLI commands for plex-failover:
- plex-failover run: Run the supervisor loop until SIGINT/SIGTERM
- plex-failover tick: Run one tick and print the status snapshot
- plex-failover mode [MODE]: Show or set the operating mode
- plex-failover init: Create the state directory and default mode
- plex-failover status: Show mode, primary health and run states (no actions)
- plex-failover db-sync: Mirror the primary database to the stopped secondary
- plex-failover pre-backup / post-backup: Pause/resume db-sync around backups

Exit codes: 0 ok, 1 runtime/state failure, 2 usage/config error.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from importlib.metadata import PackageNotFoundError, version
from typing import TYPE_CHECKING

from plex_failover.core import ControlResult, Mode
from plex_failover.env_parse import ConfigError, parse_float

if TYPE_CHECKING:
    from plex_failover.config import SupervisorConfig
    from plex_failover.runtime.base import InstanceRuntime

logger = logging.getLogger("plex_failover.cli")

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def _pkg_version() -> str:
    try:
        return version("plex-failover")
    except PackageNotFoundError:
        return "0.0.0"


def _setup_logging(debug: bool, log_file: str | None = None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def _load_config(args: argparse.Namespace) -> SupervisorConfig:
    from plex_failover.config import SupervisorConfig  # noqa: PLC0415 - lazy import for fast CLI startup

    if args.config:
        return SupervisorConfig.from_yaml(args.config)
    return SupervisorConfig()


def _make_runtime(config: SupervisorConfig) -> InstanceRuntime:
    """Production runtime (patched in tests)."""
    from plex_failover.runtime.docker_cli import DockerCliRuntime  # noqa: PLC0415

    return DockerCliRuntime(timeout_s=config.exec_timeout_s)


def _cmd_run(args: argparse.Namespace, config: SupervisorConfig) -> int:
    """Run the supervisor loop."""
    from plex_failover.engine import FailoverEngine  # noqa: PLC0415
    from plex_failover.observability import run_server  # noqa: PLC0415

    engine = FailoverEngine.from_config(config, runtime=_make_runtime(config))

    port = args.metrics_port if args.metrics_port is not None else config.metrics_port
    server = run_server(port) if port else None

    shutdown = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: shutdown.set())
    signal.signal(signal.SIGTERM, lambda *_: shutdown.set())

    try:
        engine.run(shutdown, max_ticks=args.max_ticks)
    finally:
        if server is not None:
            server.shutdown()
    return EXIT_OK


def _cmd_tick(args: argparse.Namespace, config: SupervisorConfig) -> int:
    """Run exactly one tick."""
    from plex_failover.engine import FailoverEngine  # noqa: PLC0415

    engine = FailoverEngine.from_config(config, runtime=_make_runtime(config))
    report = engine.tick()
    print(report.status)
    failed = [r for r in report.actions if r.result is ControlResult.FAILED]
    return EXIT_FAILURE if failed else EXIT_OK


def _cmd_mode(args: argparse.Namespace, config: SupervisorConfig) -> int:
    """Print or set the operating mode."""
    from plex_failover.state import ModeStore, build_state_store  # noqa: PLC0415

    store = build_state_store(config)
    store.ensure()
    mode_store = ModeStore(store)
    if args.mode is None:
        print(mode_store.get().value)
        return EXIT_OK

    mode = Mode(args.mode)
    mode_store.set(mode)
    print(f"Mode set to: {mode.value}")
    return EXIT_OK


def _cmd_init(args: argparse.Namespace, config: SupervisorConfig) -> int:
    """Create the state store and default mode."""
    from plex_failover.state import (  # noqa: PLC0415
        KEY_LAST_NOTIFY,
        FileStateStore,
        ModeStore,
        build_state_store,
    )

    store = build_state_store(config)
    store.ensure()
    mode = ModeStore(store).ensure_default()
    if isinstance(store, FileStateStore):
        store.touch([KEY_LAST_NOTIFY])
        print(f"Environment initialized under {store.state_dir}")
    else:
        print(f"Environment initialized ({config.state_backend})")
    print(f"Mode: {mode.value}")
    return EXIT_OK


def _cmd_status(args: argparse.Namespace, config: SupervisorConfig) -> int:
    """Print the current snapshot without acting."""
    from plex_failover.core import Instance, InstanceRole  # noqa: PLC0415
    from plex_failover.engine import compose_status  # noqa: PLC0415
    from plex_failover.health import HealthEvaluator  # noqa: PLC0415
    from plex_failover.state import ModeStore, build_state_store  # noqa: PLC0415

    runtime = _make_runtime(config)
    evaluator = HealthEvaluator(
        runtime,
        process_pattern=config.process_pattern,
        log_paths=config.log_paths,
        error_patterns=config.error_patterns,
        tail_lines=config.log_tail_lines,
    )
    primary = Instance(InstanceRole.PRIMARY, config.primary_container)
    secondary = Instance(InstanceRole.SECONDARY, config.secondary_container)

    mode = ModeStore(build_state_store(config)).get()
    p_state = evaluator.run_state(primary)
    health = evaluator.verdict(primary, p_state)
    s_state = evaluator.run_state(secondary)
    print(compose_status(mode, health, p_state, s_state, []))
    return EXIT_OK


def _cmd_db_sync(args: argparse.Namespace, config: SupervisorConfig) -> int:
    """Mirror the primary database into the stopped secondary."""
    from plex_failover.sync import DbSync, DbSyncConfig, SyncError  # noqa: PLC0415

    sync_config = DbSyncConfig.for_secondary(config.secondary_container)
    if args.dry_run:
        sync_config.dry_run = True
    try:
        result = DbSync(sync_config, _make_runtime(config)).run()
    except SyncError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_FAILURE

    print(f"db-sync: {result.outcome.value} (changed items: {result.changed_items})")
    return EXIT_OK if result.ok else EXIT_FAILURE


def _cmd_pre_backup(args: argparse.Namespace, config: SupervisorConfig) -> int:
    """Pause db-sync for a backup."""
    from plex_failover.sync import DbSyncConfig, pre_backup  # noqa: PLC0415

    sync_config = DbSyncConfig.for_secondary(config.secondary_container)
    pre_backup(sync_config.pause_flag, sync_config.lock_file, wait_s=args.wait_s)
    return EXIT_OK


def _cmd_post_backup(args: argparse.Namespace, config: SupervisorConfig) -> int:
    """Resume db-sync after a backup."""
    from plex_failover.sync import DbSyncConfig, post_backup  # noqa: PLC0415

    post_backup(DbSyncConfig.for_secondary(config.secondary_container).pause_flag)
    return EXIT_OK


_COMMANDS = {
    "run": _cmd_run,
    "tick": _cmd_tick,
    "mode": _cmd_mode,
    "init": _cmd_init,
    "status": _cmd_status,
    "db-sync": _cmd_db_sync,
    "pre-backup": _cmd_pre_backup,
    "post-backup": _cmd_post_backup,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="plex-failover", description="Plex failover supervisor")
    parser.add_argument("--version", action="version", version=f"plex-failover {_pkg_version()}")
    parser.add_argument("--config", help="YAML config file (overrides environment defaults)")
    parser.add_argument("--debug", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="cmd", required=True)

    p_run = sub.add_parser("run", help="Run the supervisor loop")
    p_run.add_argument(
        "--metrics-port", type=int, default=None, help="Port for /healthz and /metrics (0 = off)"
    )
    p_run.add_argument("--max-ticks", type=int, default=0, help="Stop after N ticks (0 = forever)")

    sub.add_parser("tick", help="Run one supervisor tick and print the status")

    p_mode = sub.add_parser("mode", help="Show or set the operating mode")
    p_mode.add_argument("mode", nargs="?", choices=[m.value for m in Mode], help="New mode")

    sub.add_parser("init", help="Create the state directory and default mode")
    sub.add_parser("status", help="Show mode, primary health and run states")

    p_sync = sub.add_parser("db-sync", help="Mirror the primary database to the secondary")
    p_sync.add_argument("--dry-run", action="store_true", help="Preview changes only")

    p_pre = sub.add_parser("pre-backup", help="Pause db-sync before a backup")
    p_pre.add_argument(
        "--wait-s",
        type=float,
        default=parse_float("WAIT_SECS", 60.0, strict=False),
        help="Max seconds to wait for a running sync",
    )
    sub.add_parser("post-backup", help="Resume db-sync after a backup")

    return parser


def main(argv: list[str] | None = None) -> int:
    from plex_failover.state import StateStoreError  # noqa: PLC0415

    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = _load_config(args)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return EXIT_USAGE

    _setup_logging(args.debug or config.debug, config.log_file if args.cmd == "run" else None)

    try:
        return _COMMANDS[args.cmd](args, config)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except StateStoreError as e:
        logger.error("State store failure: %s", e)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
