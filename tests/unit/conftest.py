"""Shared pytest fixtures for unit tests."""

from __future__ import annotations

import pytest

from plex_failover.core import Instance, InstanceRole
from plex_failover.health import HealthEvaluator
from plex_failover.runtime import FakeRuntime, InstanceController
from plex_failover.state import InMemoryStateStore

PRIMARY = "Plex-Media-Server"
SECONDARY = "Plex-Media-Server-Secondary"
LOG_PATH = "/config/Library/Application Support/Plex Media Server/Logs/Plex Media Server.log"


@pytest.fixture
def primary() -> Instance:
    return Instance(InstanceRole.PRIMARY, PRIMARY)


@pytest.fixture
def secondary() -> Instance:
    return Instance(InstanceRole.SECONDARY, SECONDARY)


@pytest.fixture
def runtime() -> FakeRuntime:
    """Primary serving, secondary container up with Plex stopped."""
    rt = FakeRuntime()
    rt.add(PRIMARY, container_running=True, service_running=True)
    rt.add(SECONDARY, container_running=True, service_running=False)
    rt.set_log(PRIMARY, LOG_PATH, ["Plex Media Server v1.40 starting", "Listening on 32400"])
    return rt


@pytest.fixture
def evaluator(runtime: FakeRuntime) -> HealthEvaluator:
    return HealthEvaluator(
        runtime,
        process_pattern="Plex Media Server",
        log_paths=[LOG_PATH],
        error_patterns=["Unable to set up server"],
        tail_lines=200,
    )


@pytest.fixture
def sleeps() -> list[float]:
    """Records sleep() calls made by the controller."""
    return []


@pytest.fixture
def controller(
    runtime: FakeRuntime, evaluator: HealthEvaluator, sleeps: list[float]
) -> InstanceController:
    return InstanceController(
        runtime,
        evaluator,
        settle_delay_s=3.0,
        container_settle_s=1.0,
        sleep=sleeps.append,
    )


@pytest.fixture
def store() -> InMemoryStateStore:
    return InMemoryStateStore()
