"""Backup hooks that pause database mirroring around an appdata backup."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path

from plex_failover.sync.db_sync import DEFAULT_LOCK_FILE, DEFAULT_PAUSE_FLAG, lock_held

logger = logging.getLogger(__name__)

DEFAULT_WAIT_S = 60.0
WAIT_STEP_S = 2.0


def pre_backup(
    pause_flag: str | Path = DEFAULT_PAUSE_FLAG,
    lock_file: str | Path = DEFAULT_LOCK_FILE,
    *,
    wait_s: float = DEFAULT_WAIT_S,
    step_s: float = WAIT_STEP_S,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Create the pause flag, then wait for an in-flight sync to release its lock.

    The backup goes ahead after *wait_s* even if the sync is still running.

    Returns:
        True if no sync held the lock when we stopped waiting.
    """
    flag = Path(pause_flag)
    flag.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Pre-backup: creating flag %s", flag)
    flag.touch()

    elapsed = 0.0
    while lock_held(lock_file):
        if elapsed >= wait_s:
            logger.warning(
                "Pre-backup: timeout waiting for existing sync to finish; "
                "continuing backup with sync paused."
            )
            return False
        logger.info("Pre-backup: sync lock held, waiting...")
        sleep(step_s)
        elapsed += step_s
    return True


def post_backup(pause_flag: str | Path = DEFAULT_PAUSE_FLAG) -> None:
    """Remove the pause flag so syncing resumes."""
    flag = Path(pause_flag)
    logger.info("Post-backup: removing flag %s", flag)
    flag.unlink(missing_ok=True)
