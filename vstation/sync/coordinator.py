"""
Progress sync coordinator.

Keeps one logical progress record per (user, workstation) across two stores:
- Local cache: written on a short autosave interval, authoritative offline
- Remote store: pushed on a longer interval, retried on the next tick

Both loops run as asyncio tasks on the caller's event loop.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from loguru import logger

from vstation.core.errors import SyncFailure
from vstation.core.models import ProgressSnapshot, now_ms

from .local_cache import BackupRecord, LocalCache
from .remote import RemoteStore
from .snapshot import Winner, choose, has_unfinished_progress

SnapshotProvider = Callable[[], "ProgressSnapshot | None"]


@dataclass
class SyncStatus:
    """Current sync status."""

    is_running: bool = False
    is_syncing: bool = False
    remote_connected: bool = False
    last_autosave_at: datetime | None = None
    last_sync_at: datetime | None = None
    last_sync_success: bool = True
    last_push_count: int = 0
    error_message: str | None = None
    total_autosaves: int = 0
    total_syncs: int = 0
    failed_syncs: int = 0


def _content_key(snapshot: ProgressSnapshot) -> str:
    return snapshot.model_copy(update={"updated_at": 0}).model_dump_json()


@dataclass
class ProgressSyncCoordinator:
    """
    Autosave, remote sync and resume for progress snapshots.

    Usage:
        coordinator = ProgressSyncCoordinator(local=LocalCache(), remote=remote)
        snapshot = await coordinator.restore_progress("u1", "env-monitoring")
        coordinator.set_current(lambda: build_snapshot())
        coordinator.start()
        # ... session runs ...
        await coordinator.shutdown()
    """

    local: LocalCache
    remote: RemoteStore | None = None
    autosave_interval: float = 30
    sync_interval: float = 60
    max_backups: int = 5

    # Internal state
    _status: SyncStatus = field(default_factory=SyncStatus)
    _provider: SnapshotProvider | None = field(default=None, repr=False)
    _last_saved: dict[tuple[str, str], str] = field(default_factory=dict, repr=False)
    _stop_event: asyncio.Event | None = field(default=None, repr=False)
    _tasks: list[asyncio.Task] = field(default_factory=list, repr=False)
    _sync_lock: asyncio.Lock | None = field(default=None, repr=False)

    @classmethod
    def from_settings(cls, settings, local: LocalCache | None = None, remote: RemoteStore | None = None):
        config = settings.get_sync_config()
        return cls(
            local=local or LocalCache(settings.local_cache_path),
            remote=remote,
            autosave_interval=config["autosave_interval"],
            sync_interval=config["remote_sync_interval"],
            max_backups=config["max_backups"],
        )

    @property
    def status(self) -> SyncStatus:
        """Get current sync status."""
        return self._status

    # =========================================================================
    # Current session
    # =========================================================================

    def set_current(self, provider: SnapshotProvider | ProgressSnapshot) -> None:
        """
        Point autosave at the active session.

        Replaces whatever session was current before; its last saved state
        stays in the local cache.
        """
        if isinstance(provider, ProgressSnapshot):
            snapshot = provider
            self._provider = lambda: snapshot
        else:
            self._provider = provider

    def clear_current(self) -> None:
        self._provider = None

    def _next_updated_at(self, user_id: str, workstation_id: str) -> int:
        previous = self.local.load_snapshot(user_id, workstation_id)
        last = previous.updated_at if previous else 0
        return max(now_ms(), last + 1)

    # =========================================================================
    # Autosave
    # =========================================================================

    def autosave_now(self, force: bool = False) -> ProgressSnapshot | None:
        """
        Write the current snapshot to the local cache and rotate backups.

        Unchanged content is skipped unless force is set.

        Returns:
            The stamped snapshot, or None if nothing was written
        """
        if self._provider is None:
            return None
        snapshot = self._provider()
        if snapshot is None:
            return None

        content = _content_key(snapshot)
        if not force and self._last_saved.get(snapshot.key) == content:
            logger.debug("Autosave skipped, {} unchanged", snapshot.key)
            return None

        stamped = snapshot.model_copy(
            update={"updated_at": self._next_updated_at(snapshot.user_id, snapshot.workstation_id)}
        )
        self.local.save_snapshot(stamped, pending_push=True)
        self.local.add_backup(stamped, self.max_backups)
        self._last_saved[stamped.key] = content

        self._status.last_autosave_at = datetime.now()
        self._status.total_autosaves += 1
        logger.debug(f"Autosaved {stamped.user_id}/{stamped.workstation_id} at {stamped.updated_at}")
        return stamped

    # =========================================================================
    # Remote sync
    # =========================================================================

    def _get_lock(self) -> asyncio.Lock:
        if self._sync_lock is None:
            self._sync_lock = asyncio.Lock()
        return self._sync_lock

    async def sync_now(self) -> bool:
        """
        Push every pending local snapshot to the remote store.

        A SyncFailure is logged and left for the next tick; it is never raised.

        Returns:
            True if nothing remains pending
        """
        if self.remote is None:
            return False

        async with self._get_lock():
            self._status.is_syncing = True
            pushed = 0
            try:
                for snapshot in self.local.pending_snapshots():
                    await self.remote.push_snapshot(snapshot)
                    self.local.mark_pushed(snapshot.user_id, snapshot.workstation_id, snapshot.updated_at)
                    pushed += 1
            except SyncFailure as exc:
                logger.warning("Remote sync failed, will retry: {}", exc)
                self._status.remote_connected = False
                self._status.last_sync_success = False
                self._status.error_message = str(exc)
                self._status.failed_syncs += 1
                return False
            finally:
                self._status.is_syncing = False
                self._status.last_push_count = pushed

            self._status.remote_connected = True
            self._status.last_sync_at = datetime.now()
            self._status.last_sync_success = True
            self._status.error_message = None
            self._status.total_syncs += 1
            if pushed:
                logger.info("Remote sync complete: pushed={}", pushed)
            return True

    # =========================================================================
    # Resume
    # =========================================================================

    async def restore_progress(self, user_id: str, workstation_id: str) -> ProgressSnapshot | None:
        """
        Reconcile local and remote copies and converge both stores on the winner.

        If the remote is unreachable the local copy is used as-is and stays
        pending for the next sync.
        """
        local = self.local.load_snapshot(user_id, workstation_id)

        remote_snapshot: ProgressSnapshot | None = None
        remote_ok = False
        if self.remote is not None:
            try:
                remote_snapshot = await self.remote.fetch_snapshot(user_id, workstation_id)
                remote_ok = True
                self._status.remote_connected = True
            except SyncFailure as exc:
                logger.warning("Remote fetch failed, using local progress: {}", exc)
                self._status.remote_connected = False

        result = choose(local, remote_snapshot)

        if result.winner == Winner.REMOTE and result.snapshot is not None:
            self.local.save_snapshot(result.snapshot, pending_push=False)
            logger.info(f"Restored remote progress for {user_id}/{workstation_id} ({result.snapshot.updated_at})")
        elif result.winner == Winner.LOCAL and result.snapshot is not None and remote_ok:
            try:
                await self.remote.push_snapshot(result.snapshot)
                self.local.mark_pushed(user_id, workstation_id, result.snapshot.updated_at)
            except SyncFailure as exc:
                logger.warning("Could not overwrite stale remote progress: {}", exc)
        elif result.winner == Winner.NONE and result.snapshot is not None and remote_ok:
            self.local.mark_pushed(user_id, workstation_id, result.snapshot.updated_at)

        if result.snapshot is not None:
            self._last_saved[result.snapshot.key] = _content_key(result.snapshot)
        return result.snapshot

    def has_unfinished_progress(self, user_id: str, workstation_id: str) -> bool:
        return has_unfinished_progress(self.local.load_snapshot(user_id, workstation_id))

    # =========================================================================
    # Backups
    # =========================================================================

    def list_backups(self, user_id: str, workstation_id: str) -> list[BackupRecord]:
        return self.local.list_backups(user_id, workstation_id)

    def restore_from_backup(self, backup_id: int) -> ProgressSnapshot:
        """
        Make a backup the current local snapshot.

        The restored copy gets a fresh updated_at so it wins the next
        reconciliation and is pushed on the next sync.
        """
        backup = self.local.get_backup(backup_id)
        restored = backup.snapshot.model_copy(
            update={"updated_at": self._next_updated_at(backup.user_id, backup.workstation_id)}
        )
        self.local.save_snapshot(restored, pending_push=True)
        self._last_saved[restored.key] = _content_key(restored)
        logger.info(f"Restored backup {backup_id} for {backup.user_id}/{backup.workstation_id}")
        return restored

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Start both loops on the running event loop."""
        if self._status.is_running:
            logger.warning("Progress sync already running")
            return

        self._stop_event = asyncio.Event()
        self._tasks = [asyncio.create_task(self._autosave_loop(), name="vstation-autosave")]
        if self.remote is not None:
            self._tasks.append(asyncio.create_task(self._sync_loop(), name="vstation-remote-sync"))
        self._status.is_running = True

        logger.info(
            "Progress sync started (autosave: {}s, remote: {}s)",
            self.autosave_interval,
            self.sync_interval if self.remote is not None else "off",
        )

    async def stop(self) -> None:
        """Stop both loops gracefully."""
        if not self._status.is_running:
            return

        if self._stop_event is not None:
            self._stop_event.set()
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for task, outcome in zip(self._tasks, results):
            if isinstance(outcome, BaseException):
                logger.error("{} ended with an error: {}", task.get_name(), outcome)
        self._tasks = []
        self._status.is_running = False
        logger.info("Progress sync stopped")

    async def shutdown(self) -> None:
        """
        Host-signaled termination: one last save and one sync attempt.

        Nothing here is allowed to propagate.
        """
        try:
            await self.stop()
        except Exception as exc:  # Intentionally broad - termination must not fail
            logger.error("Stopping sync loops failed: {}", exc)
            self._tasks = []
            self._status.is_running = False
        try:
            self.autosave_now()
        except Exception as exc:  # Intentionally broad - termination must not fail
            logger.error("Final autosave failed: {}", exc)
        try:
            await self.sync_now()
        except Exception as exc:  # Intentionally broad - termination must not fail
            logger.error("Final remote sync failed: {}", exc)

    async def _wait(self, interval: float) -> bool:
        """Sleep for interval; True if stop was requested meanwhile."""
        assert self._stop_event is not None
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
            return True
        except asyncio.TimeoutError:
            return False

    async def _autosave_loop(self) -> None:
        while not await self._wait(self.autosave_interval):
            try:
                self.autosave_now()
            except Exception as exc:  # Intentionally broad - one bad tick must not end the loop
                logger.error("Autosave error: {}", exc)
                self._status.error_message = str(exc)

    async def _sync_loop(self) -> None:
        while not await self._wait(self.sync_interval):
            try:
                await self.sync_now()
            except Exception as exc:  # Intentionally broad - one bad tick must not end the loop
                logger.error("Remote sync error: {}", exc)
                self._status.error_message = str(exc)

    def get_status_line(self) -> str:
        """
        Get a short status line for display.

        Returns:
            Status string like "Sync: pushed 2m ago (3)"
        """
        if self.remote is None:
            return "Sync: local only"

        if self._status.is_syncing:
            return "Sync: syncing..."

        if self._status.last_sync_at is None:
            return "Sync: not synced" if self._status.last_sync_success else "Sync: offline, saving locally"

        age = datetime.now() - self._status.last_sync_at
        if age.total_seconds() < 60:
            age_str = "just now"
        elif age.total_seconds() < 3600:
            age_str = f"{int(age.total_seconds() / 60)}m ago"
        else:
            age_str = f"{int(age.total_seconds() / 3600)}h ago"

        if self._status.last_sync_success:
            return f"Sync: pushed {age_str} ({self._status.last_push_count})"
        return f"Sync: failed, last success {age_str}"
