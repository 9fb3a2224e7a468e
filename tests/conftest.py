"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from plex_failover.observability import reset_failover_metrics, reset_start_time

if TYPE_CHECKING:
    from collections.abc import Generator

# Host settings must not leak into tests
_ENV_PREFIXES = ("PLEX_FAILOVER_", "PLEX_DB_SYNC_")
_ENV_NAMES = ("DEBUG", "DRY_RUN", "WAIT_SECS")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith(_ENV_PREFIXES) or name in _ENV_NAMES:
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _reset_metrics() -> Generator[None, None, None]:
    """Fresh global metrics and start time for every test."""
    reset_failover_metrics()
    reset_start_time()
    yield
    reset_failover_metrics()
    reset_start_time()
