"""Plex database mirroring: primary -> secondary, only while the secondary is down.

Runs independently of the supervisor (cron / user-scripts schedule).  The
supervisor never calls it, so the standby's database is only as fresh as
the last successful sync.

Guards, checked in order:
1. Pause flag present (a backup is running)      -> PAUSED, nothing done
2. Another sync holds the lock file (flock)       -> LOCKED, nothing done
3. rsync missing / source missing                 -> SyncError
4. Secondary container running                    -> SECONDARY_RUNNING, nothing done

rsync mirrors with --delete; a wrong source path wipes the destination.
"""

from __future__ import annotations

import contextlib
import fcntl
import logging
import re
import shutil
import subprocess
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from plex_failover.env_parse import ConfigError, parse_bool, parse_csv, parse_str
from plex_failover.runtime.errors import RuntimeCallError

if TYPE_CHECKING:
    from plex_failover.runtime.base import InstanceRuntime

logger = logging.getLogger(__name__)

_DB_SUBPATH = "Library/Application Support/Plex Media Server/Plug-in Support/Databases"

ENV_SYNC_SRC = "PLEX_DB_SYNC_SRC"
ENV_SYNC_DEST = "PLEX_DB_SYNC_DEST"
ENV_SYNC_CONTAINER = "PLEX_DB_SYNC_CONTAINER"
ENV_SYNC_LOCK = "PLEX_DB_SYNC_LOCK"
ENV_SYNC_PAUSE_FLAG = "PLEX_DB_SYNC_PAUSE_FLAG"
ENV_SYNC_EXCLUDES = "PLEX_DB_SYNC_EXCLUDES"
ENV_DRY_RUN = "DRY_RUN"

DEFAULT_SRC = f"/mnt/user/appdata/Plex-Media-Server/{_DB_SUBPATH}"
DEFAULT_DEST = f"/mnt/user/appdata/Plex-Media-Server-Secondary/{_DB_SUBPATH}"
DEFAULT_CONTAINER = "Plex-Media-Server-Secondary"
DEFAULT_LOCK_FILE = "/var/tmp/plex_db_sync.lock"
DEFAULT_PAUSE_FLAG = "/var/tmp/plex_backup_in_progress"
DEFAULT_EXCLUDES = [".DS_Store", "lost+found"]

RSYNC_BASE_ARGS: tuple[str, ...] = (
    "-aH",
    "--delete",
    "--itemize-changes",
    "--info=stats2,flist2,del2",
    "--human-readable",
    "--inplace",
)

# Itemized change lines: "<f.st......", ">f+++++++++", "cd+++++++++", "*deleting ..."
_ITEMIZE_RE = re.compile(r"^(?:[<>ch.][fdLDS]\S*|\*deleting)\s")

_STATS_PREFIXES: tuple[str, ...] = (
    "Number of files:",
    "Number of regular files",
    "Number of created files:",
    "Number of deleted files:",
    "Total transferred file size:",
    "Literal data:",
    "Matched data:",
    "File list size:",
    "Total bytes sent:",
    "Total bytes received:",
)

FAILURE_TAIL_LINES = 50


class SyncError(Exception):
    """Database sync cannot run (missing tools or paths)."""


class SyncOutcome(Enum):
    """How a sync run ended."""

    SYNCED = "synced"
    DRY_RUN = "dry_run"
    PAUSED = "paused"
    LOCKED = "locked"
    SECONDARY_RUNNING = "secondary_running"
    FAILED = "failed"


@dataclass
class DbSyncConfig:
    """Configuration for the database mirror.

    Attributes:
        source: Primary database directory (env: PLEX_DB_SYNC_SRC)
        dest: Secondary database directory (env: PLEX_DB_SYNC_DEST)
        container: Secondary container name (env: PLEX_DB_SYNC_CONTAINER)
        lock_file: flock file shared by concurrent syncs (env: PLEX_DB_SYNC_LOCK)
        pause_flag: Presence pauses syncing (env: PLEX_DB_SYNC_PAUSE_FLAG)
        excludes: rsync exclude patterns (env: PLEX_DB_SYNC_EXCLUDES, CSV)
        dry_run: Preview only, rsync -n (env: DRY_RUN)
    """

    source: str = field(default_factory=lambda: parse_str(ENV_SYNC_SRC, DEFAULT_SRC))
    dest: str = field(default_factory=lambda: parse_str(ENV_SYNC_DEST, DEFAULT_DEST))
    container: str = field(
        default_factory=lambda: parse_str(ENV_SYNC_CONTAINER, DEFAULT_CONTAINER)
    )
    lock_file: str = field(default_factory=lambda: parse_str(ENV_SYNC_LOCK, DEFAULT_LOCK_FILE))
    pause_flag: str = field(
        default_factory=lambda: parse_str(ENV_SYNC_PAUSE_FLAG, DEFAULT_PAUSE_FLAG)
    )
    excludes: list[str] = field(
        default_factory=lambda: parse_csv(ENV_SYNC_EXCLUDES, DEFAULT_EXCLUDES)
    )
    dry_run: bool = field(default_factory=lambda: parse_bool(ENV_DRY_RUN, False, strict=False))

    @classmethod
    def for_secondary(cls, secondary_container: str, **overrides: Any) -> DbSyncConfig:
        """Mirror config for the supervisor's secondary.

        PLEX_DB_SYNC_CONTAINER still wins when set.
        """
        overrides.setdefault(
            "container", parse_str(ENV_SYNC_CONTAINER, secondary_container)
        )
        return cls(**overrides)

    def __post_init__(self) -> None:
        """Validate configuration."""
        if Path(self.source).resolve() == Path(self.dest).resolve():
            raise ConfigError(f"source and dest must differ (both {self.source!r})")


@dataclass(frozen=True)
class SyncResult:
    """Outcome of one sync run.

    Attributes:
        outcome: How the run ended
        changed_items: Itemized changes rsync reported (0 if rsync did not run)
        stats: rsync statistics lines
        returncode: rsync exit code (None if rsync did not run)
        output_tail: Last lines of rsync output on failure
    """

    outcome: SyncOutcome
    changed_items: int = 0
    stats: tuple[str, ...] = ()
    returncode: int | None = None
    output_tail: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        """False only when rsync ran and failed."""
        return self.outcome is not SyncOutcome.FAILED


def count_changes(output: str) -> int:
    """Count itemized change lines in rsync output."""
    return sum(1 for line in output.splitlines() if _ITEMIZE_RE.match(line))


def extract_stats(output: str) -> list[str]:
    """Pick the statistics block out of rsync output."""
    return [line for line in output.splitlines() if line.startswith(_STATS_PREFIXES)]


@contextlib.contextmanager
def try_lock(lock_file: str | Path) -> Iterator[bool]:
    """Hold a non-blocking exclusive flock on *lock_file*; yields acquired."""
    path = Path(lock_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a") as f:
        try:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            yield False
            return
        try:
            yield True
        finally:
            fcntl.flock(f.fileno(), fcntl.LOCK_UN)


def lock_held(lock_file: str | Path) -> bool:
    """Check whether another process holds the sync lock."""
    if not Path(lock_file).exists():
        return False
    with try_lock(lock_file) as acquired:
        return not acquired


class DbSync:
    """Mirrors the primary Plex database to the stopped secondary.

    Args:
        config: Sync configuration
        runtime: Used to check whether the secondary container runs
        runner: subprocess.run-compatible callable (for testing)
        which: shutil.which-compatible callable (for testing)
    """

    def __init__(
        self,
        config: DbSyncConfig,
        runtime: InstanceRuntime,
        *,
        runner: Callable[..., subprocess.CompletedProcess[Any]] | None = None,
        which: Callable[[str], str | None] | None = None,
    ) -> None:
        self._config = config
        self._runtime = runtime
        self._runner = runner or subprocess.run
        self._which = which or shutil.which

    @property
    def config(self) -> DbSyncConfig:
        """Sync configuration."""
        return self._config

    def build_argv(self) -> list[str]:
        """Full command line: nice wrapper + rsync + paths."""
        wrapper: list[str] = []
        if self._which("ionice"):
            wrapper = ["ionice", "-c2", "-n7", "nice", "-n", "10"]
        elif self._which("nice"):
            wrapper = ["nice", "-n", "10"]

        args = [*RSYNC_BASE_ARGS]
        args.extend(f"--exclude={pattern}" for pattern in self._config.excludes)
        if self._config.dry_run:
            args.append("-n")
        source = self._config.source.rstrip("/") + "/"
        dest = self._config.dest.rstrip("/") + "/"
        return [*wrapper, "rsync", *args, "--", source, dest]

    def run(self) -> SyncResult:
        """Run one guarded sync.

        Raises:
            SyncError: If rsync is missing, the source is missing, the
                destination cannot be created, or the runtime is unreachable.
        """
        cfg = self._config
        if Path(cfg.pause_flag).exists():
            logger.info("Backup flag found (%s). Skipping database sync.", cfg.pause_flag)
            return SyncResult(SyncOutcome.PAUSED)

        with try_lock(cfg.lock_file) as acquired:
            if not acquired:
                logger.info("Another sync is running. Skipping.")
                return SyncResult(SyncOutcome.LOCKED)
            return self._run_locked()

    def _run_locked(self) -> SyncResult:
        cfg = self._config
        if self._which("rsync") is None:
            raise SyncError("rsync not found in PATH")
        if not Path(cfg.source).is_dir():
            raise SyncError(f"source path missing: {cfg.source}")
        dest = Path(cfg.dest)
        if not dest.is_dir():
            logger.info("Destination path missing: %s (creating)", dest)
            try:
                dest.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise SyncError(f"could not create {dest}: {e}") from e

        try:
            running = self._runtime.is_running(cfg.container)
        except RuntimeCallError as e:
            raise SyncError(f"cannot inspect {cfg.container}: {e}") from e
        if running:
            logger.info("Container %s is running. No action taken.", cfg.container)
            return SyncResult(SyncOutcome.SECONDARY_RUNNING)

        logger.info("Container %s is stopped. Starting database sync", cfg.container)
        if cfg.dry_run:
            logger.info("DRY_RUN enabled: no changes will be made.")
        proc = self._runner(
            self.build_argv(),
            capture_output=True,
            text=True,
            check=False,
        )
        output = (proc.stdout or "") + (proc.stderr or "")

        if proc.returncode != 0:
            tail = tuple(output.splitlines()[-FAILURE_TAIL_LINES:])
            logger.error("rsync failed with exit code %d", proc.returncode)
            for line in tail:
                logger.error("rsync: %s", line)
            return SyncResult(SyncOutcome.FAILED, returncode=proc.returncode, output_tail=tail)

        changes = count_changes(proc.stdout or "")
        stats = tuple(extract_stats(proc.stdout or ""))
        if cfg.dry_run:
            logger.info("DRY-RUN completed. Would change items: %d", changes)
            outcome = SyncOutcome.DRY_RUN
        else:
            logger.info("Sync completed successfully. Changed items: %d", changes)
            outcome = SyncOutcome.SYNCED
        for line in stats:
            logger.info("rsync: %s", line)
        return SyncResult(outcome, changed_items=changes, stats=stats, returncode=0)
