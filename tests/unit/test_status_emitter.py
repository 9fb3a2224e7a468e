"""Tests for change-only + heartbeat status emission."""

from __future__ import annotations

import logging

import pytest

from plex_failover.engine import HEARTBEAT_TAG, EmissionKind, StatusEmitter


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestStatusEmitter:
    """Tests for StatusEmitter."""

    def test_first_snapshot_emitted(self) -> None:
        """Test the first snapshot is always emitted."""
        lines: list[str] = []
        emitter = StatusEmitter(15, clock=FakeClock(100.0), sink=lines.append)
        assert emitter.offer("a") is EmissionKind.CHANGE
        assert lines == ["a"]
        assert emitter.last_status == "a"

    def test_unchanged_suppressed_until_heartbeat(self) -> None:
        """Test repeats are silent until the heartbeat is due."""
        clock = FakeClock(100.0)
        lines: list[str] = []
        emitter = StatusEmitter(15, clock=clock, sink=lines.append)
        emitter.offer("a")
        clock.now = 114.9
        assert emitter.offer("a") is None
        clock.now = 115.0
        assert emitter.offer("a") is EmissionKind.HEARTBEAT
        assert lines == ["a", f"{HEARTBEAT_TAG} a"]

    def test_heartbeat_interval_restarts_on_change(self) -> None:
        """Test a change restarts the heartbeat interval."""
        clock = FakeClock(100.0)
        lines: list[str] = []
        emitter = StatusEmitter(15, clock=clock, sink=lines.append)
        emitter.offer("a")
        clock.now = 110.0
        assert emitter.offer("b") is EmissionKind.CHANGE
        clock.now = 120.0
        assert emitter.offer("b") is None
        clock.now = 125.0
        assert emitter.offer("b") is EmissionKind.HEARTBEAT

    def test_heartbeat_disabled(self) -> None:
        """Test heartbeat 0 never repeats."""
        clock = FakeClock(0.0)
        lines: list[str] = []
        emitter = StatusEmitter(0, clock=clock, sink=lines.append)
        emitter.offer("a")
        clock.now = 10_000.0
        assert emitter.offer("a") is None
        assert emitter.offer("b") is EmissionKind.CHANGE
        assert lines == ["a", "b"]

    def test_default_sink_logs_to_status_logger(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test the default sink logs on plex_failover.status."""
        clock = FakeClock(0.0)
        emitter = StatusEmitter(5, clock=clock)
        with caplog.at_level(logging.INFO, logger="plex_failover.status"):
            emitter.offer("mode=auto")
            clock.now = 5.0
            emitter.offer("mode=auto")
        messages = [r.getMessage() for r in caplog.records if r.name == "plex_failover.status"]
        assert messages == ["mode=auto", "[HEARTBEAT] mode=auto"]
