"""
Progress persistence and sync.

Exports:
- LocalCache: SQLite store for snapshots, backups and career state
- RemoteStore / HttpRemoteStore: remote persistence API
- ProgressSyncCoordinator: autosave, remote sync and resume
"""

from .coordinator import ProgressSyncCoordinator, SyncStatus
from .local_cache import BackupRecord, LocalCache
from .remote import HttpRemoteStore, RemoteApiConfig, RemoteStore, idempotency_key
from .snapshot import Reconciliation, Winner, choose, has_unfinished_progress, reconcile, snapshot_digest

__all__ = [
    "BackupRecord",
    "HttpRemoteStore",
    "LocalCache",
    "ProgressSyncCoordinator",
    "Reconciliation",
    "RemoteApiConfig",
    "RemoteStore",
    "SyncStatus",
    "Winner",
    "choose",
    "has_unfinished_progress",
    "idempotency_key",
    "reconcile",
    "snapshot_digest",
]
