"""Database mirroring to the standby instance and backup pause hooks."""

from plex_failover.sync.backup import post_backup, pre_backup
from plex_failover.sync.db_sync import (
    DbSync,
    DbSyncConfig,
    SyncError,
    SyncOutcome,
    SyncResult,
    count_changes,
    extract_stats,
    lock_held,
    try_lock,
)

__all__ = [
    "DbSync",
    "DbSyncConfig",
    "SyncError",
    "SyncOutcome",
    "SyncResult",
    "count_changes",
    "extract_stats",
    "lock_held",
    "post_backup",
    "pre_backup",
    "try_lock",
]
