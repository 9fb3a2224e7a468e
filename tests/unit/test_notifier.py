"""Tests for notification transports."""

from __future__ import annotations

import logging
import subprocess
from unittest.mock import MagicMock

import pytest

from plex_failover.core import Severity
from plex_failover.notify import CommandNotifier, LogNotifier, NotificationError


class TestCommandNotifier:
    """Tests for CommandNotifier."""

    def test_argv(self) -> None:
        """Test the Unraid notify command line."""
        notifier = CommandNotifier("/usr/local/emhttp/webGui/scripts/notify")
        argv = notifier.build_argv("Secondary Promoted", "Primary unhealthy", Severity.WARNING)
        assert argv == [
            "/usr/local/emhttp/webGui/scripts/notify",
            "-e",
            "Plex Failover",
            "-s",
            "Secondary Promoted",
            "-d",
            "Primary unhealthy",
            "-i",
            "warning",
        ]

    def test_send_runs_command(self) -> None:
        """Test send runs the command."""
        runner = MagicMock(return_value=subprocess.CompletedProcess([], 0, "", ""))
        CommandNotifier("notify", runner=runner, timeout_s=4.0).send(
            "Primary Restored", "ok", Severity.NORMAL
        )
        runner.assert_called_once()
        assert runner.call_args.args[0][-1] == "normal"
        assert runner.call_args.kwargs["timeout"] == 4.0

    def test_nonzero_exit_raises(self) -> None:
        """Test a non-zero exit raises NotificationError."""
        runner = MagicMock(return_value=subprocess.CompletedProcess([], 3, "", "boom"))
        with pytest.raises(NotificationError, match="exited 3"):
            CommandNotifier("notify", runner=runner).send("s", "d", Severity.ALERT)

    def test_missing_command_raises(self) -> None:
        """Test a missing command raises NotificationError."""
        runner = MagicMock(side_effect=FileNotFoundError("notify"))
        with pytest.raises(NotificationError):
            CommandNotifier("notify", runner=runner).send("s", "d", Severity.NORMAL)

    def test_timeout_raises(self) -> None:
        """Test a timeout raises NotificationError."""
        runner = MagicMock(side_effect=subprocess.TimeoutExpired("notify", 10))
        with pytest.raises(NotificationError):
            CommandNotifier("notify", runner=runner).send("s", "d", Severity.NORMAL)


class TestLogNotifier:
    """Tests for LogNotifier."""

    def test_levels(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test severity maps to log level."""
        with caplog.at_level(logging.INFO, logger="plex_failover.notify.notifier"):
            LogNotifier().send("Primary Restored", "back", Severity.NORMAL)
            LogNotifier().send("Forced Secondary", "forced", Severity.WARNING)
        levels = [(r.levelno, r.getMessage()) for r in caplog.records]
        assert levels[0][0] == logging.INFO
        assert "Primary Restored" in levels[0][1]
        assert levels[1][0] == logging.WARNING
