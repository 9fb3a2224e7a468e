"""Tests for the database mirror (rsync is mocked)."""

from __future__ import annotations

import fcntl
import os
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from plex_failover.env_parse import ConfigError
from plex_failover.runtime import FakeRuntime, RuntimeUnavailableError
from plex_failover.sync import (
    DbSync,
    DbSyncConfig,
    SyncError,
    SyncOutcome,
    count_changes,
    extract_stats,
    lock_held,
    try_lock,
)

SECONDARY = "Plex-Media-Server-Secondary"

RSYNC_OUTPUT = """\
sending incremental file list
>f.st...... com.plexapp.plugins.library.db
>f+++++++++ com.plexapp.plugins.library.db-wal
cd+++++++++ backups/
*deleting   com.plexapp.plugins.library.db-shm
.d..t...... ./

Number of files: 12 (reg: 10, dir: 2)
Number of created files: 2 (reg: 1, dir: 1)
Number of deleted files: 1 (reg: 1)
Total transferred file size: 1.20G bytes
Literal data: 3.40M bytes
Matched data: 1.19G bytes
File list size: 0
Total bytes sent: 3.41M
Total bytes received: 1.02K

sent 3.41M bytes  received 1.02K bytes  1.36M bytes/sec
"""


def _which_all(name: str) -> str | None:
    return f"/usr/bin/{name}"


@pytest.fixture
def sync_paths(tmp_path: Path) -> DbSyncConfig:
    src = tmp_path / "primary" / "Databases"
    src.mkdir(parents=True)
    return DbSyncConfig(
        source=str(src),
        dest=str(tmp_path / "secondary" / "Databases"),
        container=SECONDARY,
        lock_file=str(tmp_path / "sync.lock"),
        pause_flag=str(tmp_path / "backup_in_progress"),
        excludes=[".DS_Store", "lost+found"],
        dry_run=False,
    )


@pytest.fixture
def sync_runtime() -> FakeRuntime:
    rt = FakeRuntime()
    rt.add(SECONDARY, container_running=False)
    return rt


def _ok(stdout: str = RSYNC_OUTPUT) -> MagicMock:
    return MagicMock(return_value=subprocess.CompletedProcess([], 0, stdout, ""))


class TestParsing:
    """Tests for rsync output parsing."""

    def test_count_changes(self) -> None:
        """Test itemized and deleted entries are counted."""
        assert count_changes(RSYNC_OUTPUT) == 5

    def test_count_changes_ignores_noise(self) -> None:
        """Test non-itemize lines are not counted."""
        assert count_changes("sending incremental file list\n\nsent 10 bytes\n") == 0

    def test_extract_stats(self) -> None:
        """Test the stats block is captured in order."""
        stats = extract_stats(RSYNC_OUTPUT)
        assert stats[0].startswith("Number of files:")
        assert stats[-1].startswith("Total bytes received:")
        assert len(stats) == 9


class TestDbSyncConfig:
    """Tests for DbSyncConfig."""

    def test_env_defaults(self) -> None:
        """Test env overrides and default paths."""
        env = {"PLEX_DB_SYNC_CONTAINER": "plex-b", "DRY_RUN": "1"}
        with patch.dict(os.environ, env):
            config = DbSyncConfig()
        assert config.container == "plex-b"
        assert config.dry_run is True
        assert config.pause_flag == "/var/tmp/plex_backup_in_progress"
        assert config.lock_file == "/var/tmp/plex_db_sync.lock"

    def test_same_paths_rejected(self, tmp_path: Path) -> None:
        """Test source and dest must differ."""
        with pytest.raises(ConfigError, match="must differ"):
            DbSyncConfig(source=str(tmp_path), dest=str(tmp_path) + "/")


class TestBuildArgv:
    """Tests for the rsync command line."""

    def test_ionice_wrapper(self, sync_paths: DbSyncConfig, sync_runtime: FakeRuntime) -> None:
        """Test ionice + nice wrap rsync when available."""
        argv = DbSync(sync_paths, sync_runtime, which=_which_all).build_argv()
        assert argv[:7] == ["ionice", "-c2", "-n7", "nice", "-n", "10", "rsync"]
        assert "--delete" in argv
        assert "--exclude=.DS_Store" in argv
        assert "-n" not in argv[7:]
        assert argv[-2] == sync_paths.source + "/"
        assert argv[-1] == sync_paths.dest + "/"

    def test_nice_only(self, sync_paths: DbSyncConfig, sync_runtime: FakeRuntime) -> None:
        """Test nice alone is used without ionice."""
        which = lambda name: None if name == "ionice" else f"/bin/{name}"  # noqa: E731
        argv = DbSync(sync_paths, sync_runtime, which=which).build_argv()
        assert argv[:4] == ["nice", "-n", "10", "rsync"]

    def test_no_wrapper(self, sync_paths: DbSyncConfig, sync_runtime: FakeRuntime) -> None:
        """Test plain rsync when neither wrapper exists."""
        which = lambda name: "/usr/bin/rsync" if name == "rsync" else None  # noqa: E731
        assert DbSync(sync_paths, sync_runtime, which=which).build_argv()[0] == "rsync"

    def test_dry_run_flag(self, sync_paths: DbSyncConfig, sync_runtime: FakeRuntime) -> None:
        """Test dry run adds -n to rsync."""
        sync_paths.dry_run = True
        argv = DbSync(sync_paths, sync_runtime, which=_which_all).build_argv()
        assert "-n" in argv[argv.index("rsync") :]


class TestRun:
    """Tests for DbSync.run."""

    def test_synced(self, sync_paths: DbSyncConfig, sync_runtime: FakeRuntime) -> None:
        """Test a successful mirror reports changes and stats."""
        runner = _ok()
        result = DbSync(sync_paths, sync_runtime, runner=runner, which=_which_all).run()
        assert result.outcome is SyncOutcome.SYNCED
        assert result.ok
        assert result.changed_items == 5
        assert result.returncode == 0
        assert len(result.stats) == 9
        assert Path(sync_paths.dest).is_dir()
        runner.assert_called_once()

    def test_dry_run(self, sync_paths: DbSyncConfig, sync_runtime: FakeRuntime) -> None:
        """Test dry run reports DRY_RUN."""
        sync_paths.dry_run = True
        result = DbSync(sync_paths, sync_runtime, runner=_ok(), which=_which_all).run()
        assert result.outcome is SyncOutcome.DRY_RUN

    def test_paused(self, sync_paths: DbSyncConfig, sync_runtime: FakeRuntime) -> None:
        """Test the pause flag skips rsync."""
        Path(sync_paths.pause_flag).touch()
        runner = _ok()
        result = DbSync(sync_paths, sync_runtime, runner=runner, which=_which_all).run()
        assert result.outcome is SyncOutcome.PAUSED
        runner.assert_not_called()

    def test_locked(self, sync_paths: DbSyncConfig, sync_runtime: FakeRuntime) -> None:
        """Test a concurrent sync skips rsync."""
        runner = _ok()
        with open(sync_paths.lock_file, "a") as holder:
            fcntl.flock(holder.fileno(), fcntl.LOCK_EX)
            # flock locks are per open file description; a second open conflicts
            result = DbSync(sync_paths, sync_runtime, runner=runner, which=_which_all).run()
        assert result.outcome is SyncOutcome.LOCKED
        runner.assert_not_called()

    def test_secondary_running(self, sync_paths: DbSyncConfig, sync_runtime: FakeRuntime) -> None:
        """Test a running secondary skips rsync."""
        sync_runtime.instances[SECONDARY].container_running = True
        runner = _ok()
        result = DbSync(sync_paths, sync_runtime, runner=runner, which=_which_all).run()
        assert result.outcome is SyncOutcome.SECONDARY_RUNNING
        runner.assert_not_called()

    def test_rsync_failure(self, sync_paths: DbSyncConfig, sync_runtime: FakeRuntime) -> None:
        """Test a non-zero rsync exit returns the output tail."""
        output = "\n".join(f"line {i}" for i in range(80))
        runner = MagicMock(return_value=subprocess.CompletedProcess([], 23, output, "partial"))
        result = DbSync(sync_paths, sync_runtime, runner=runner, which=_which_all).run()
        assert result.outcome is SyncOutcome.FAILED
        assert not result.ok
        assert result.returncode == 23
        assert len(result.output_tail) == 50
        assert result.output_tail[-1] == "line 79partial"

    def test_missing_rsync(self, sync_paths: DbSyncConfig, sync_runtime: FakeRuntime) -> None:
        """Test missing rsync raises SyncError."""
        with pytest.raises(SyncError, match="rsync not found"):
            DbSync(sync_paths, sync_runtime, runner=_ok(), which=lambda _n: None).run()

    def test_missing_source(
        self, sync_paths: DbSyncConfig, sync_runtime: FakeRuntime, tmp_path: Path
    ) -> None:
        """Test a missing source directory raises SyncError."""
        sync_paths.source = str(tmp_path / "nowhere")
        with pytest.raises(SyncError, match="source path missing"):
            DbSync(sync_paths, sync_runtime, runner=_ok(), which=_which_all).run()

    def test_runtime_unavailable(self, sync_paths: DbSyncConfig) -> None:
        """Test an unusable runtime raises SyncError."""
        runtime = MagicMock()
        runtime.is_running.side_effect = RuntimeUnavailableError("docker")
        with pytest.raises(SyncError, match="cannot inspect"):
            DbSync(sync_paths, runtime, runner=_ok(), which=_which_all).run()

    def test_lock_released_after_run(
        self, sync_paths: DbSyncConfig, sync_runtime: FakeRuntime
    ) -> None:
        """Test the lock is released after a run."""
        DbSync(sync_paths, sync_runtime, runner=_ok(), which=_which_all).run()
        assert lock_held(sync_paths.lock_file) is False


class TestLocking:
    """Tests for try_lock and lock_held."""

    def test_try_lock(self, tmp_path: Path) -> None:
        """Test the lock is exclusive and released on exit."""
        lock = tmp_path / "x.lock"
        with try_lock(lock) as first:
            assert first is True
            with try_lock(lock) as second:
                assert second is False
            assert lock_held(lock) is True
        assert lock_held(lock) is False

    def test_missing_lock_file_not_held(self, tmp_path: Path) -> None:
        """Test a missing lock file is not held."""
        assert lock_held(tmp_path / "absent.lock") is False
