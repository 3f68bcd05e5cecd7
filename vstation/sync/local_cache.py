"""
SQLite Local Cache for progress sync.

Provides portable persistence for:
- Current progress snapshot per (user, workstation), with a pending-push flag
- Rotating timestamped backups of those snapshots
- Achievement grants, certificates and career profiles

Database location: ~/.vstation/progress.db

One process writes a given cache file at a time.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from vstation.career.achievements import AchievementGrant, Certificate
from vstation.career.levels import CareerProfile
from vstation.core.errors import DuplicateSubmission, NotFoundError
from vstation.core.models import ProgressSnapshot, now_ms

# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class BackupRecord:
    """A timestamped copy of a snapshot."""

    id: int
    user_id: str
    workstation_id: str
    created_at: int
    snapshot: ProgressSnapshot


# =============================================================================
# Local Cache
# =============================================================================


class LocalCache:
    """
    SQLite-backed local store.

    Handles:
    - Snapshots (authoritative while the remote is unreachable)
    - Backup rotation, newest first
    - Grants/certificates/profiles (implements ProgressionStore)
    """

    DEFAULT_DB_PATH = Path.home() / ".vstation" / "progress.db"

    def __init__(self, db_path: Path | None = None):
        """
        Initialize the local cache.

        Args:
            db_path: Custom database path (defaults to ~/.vstation/progress.db)
        """
        self.db_path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = None
        self._init_schema()

        logger.info(f"LocalCache initialized at {self.db_path}")

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_schema(self) -> None:
        """Initialize database schema."""
        cursor = self.conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS progress_snapshots (
                user_id TEXT NOT NULL,
                workstation_id TEXT NOT NULL,
                payload TEXT NOT NULL,
                updated_at INTEGER NOT NULL,
                pending_push INTEGER DEFAULT 1,
                PRIMARY KEY (user_id, workstation_id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS progress_backups (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                workstation_id TEXT NOT NULL,
                payload TEXT NOT NULL,
                updated_at INTEGER NOT NULL,
                created_at INTEGER NOT NULL
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_backups_owner
            ON progress_backups(user_id, workstation_id, created_at)
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS achievement_grants (
                user_id TEXT NOT NULL,
                achievement_id TEXT NOT NULL,
                unlocked_at INTEGER NOT NULL,
                PRIMARY KEY (user_id, achievement_id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS certificates (
                user_id TEXT NOT NULL,
                workstation_id TEXT NOT NULL,
                id TEXT NOT NULL,
                workstation_name TEXT,
                certificate_number TEXT NOT NULL,
                granted_at INTEGER NOT NULL,
                PRIMARY KEY (user_id, workstation_id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS career_profiles (
                user_id TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                updated_at INTEGER NOT NULL
            )
        """)

        self.conn.commit()

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    # =========================================================================
    # Snapshots
    # =========================================================================

    def save_snapshot(self, snapshot: ProgressSnapshot, pending_push: bool = True) -> None:
        self.conn.execute(
            """
            INSERT INTO progress_snapshots (user_id, workstation_id, payload, updated_at, pending_push)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(user_id, workstation_id) DO UPDATE SET
                payload = excluded.payload,
                updated_at = excluded.updated_at,
                pending_push = excluded.pending_push
            """,
            (
                snapshot.user_id,
                snapshot.workstation_id,
                snapshot.model_dump_json(),
                snapshot.updated_at,
                1 if pending_push else 0,
            ),
        )
        self.conn.commit()

    def load_snapshot(self, user_id: str, workstation_id: str) -> ProgressSnapshot | None:
        row = self.conn.execute(
            "SELECT payload FROM progress_snapshots WHERE user_id = ? AND workstation_id = ?",
            (user_id, workstation_id),
        ).fetchone()
        return ProgressSnapshot.model_validate_json(row["payload"]) if row else None

    def delete_snapshot(self, user_id: str, workstation_id: str) -> bool:
        cursor = self.conn.execute(
            "DELETE FROM progress_snapshots WHERE user_id = ? AND workstation_id = ?",
            (user_id, workstation_id),
        )
        self.conn.commit()
        return cursor.rowcount > 0

    def is_pending_push(self, user_id: str, workstation_id: str) -> bool:
        row = self.conn.execute(
            "SELECT pending_push FROM progress_snapshots WHERE user_id = ? AND workstation_id = ?",
            (user_id, workstation_id),
        ).fetchone()
        return bool(row and row["pending_push"])

    def mark_pushed(self, user_id: str, workstation_id: str, updated_at: int) -> bool:
        """Clear the pending flag, unless a newer save happened meanwhile."""
        cursor = self.conn.execute(
            """
            UPDATE progress_snapshots SET pending_push = 0
            WHERE user_id = ? AND workstation_id = ? AND updated_at = ?
            """,
            (user_id, workstation_id, updated_at),
        )
        self.conn.commit()
        return cursor.rowcount > 0

    def pending_snapshots(self) -> list[ProgressSnapshot]:
        rows = self.conn.execute(
            "SELECT payload FROM progress_snapshots WHERE pending_push = 1 ORDER BY updated_at"
        ).fetchall()
        return [ProgressSnapshot.model_validate_json(r["payload"]) for r in rows]

    # =========================================================================
    # Backups
    # =========================================================================

    def add_backup(self, snapshot: ProgressSnapshot, max_backups: int = 5) -> int:
        """
        Store a backup and evict the oldest beyond max_backups.

        Returns:
            Number of evicted backups
        """
        self.conn.execute(
            """
            INSERT INTO progress_backups (user_id, workstation_id, payload, updated_at, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                snapshot.user_id,
                snapshot.workstation_id,
                snapshot.model_dump_json(),
                snapshot.updated_at,
                now_ms(),
            ),
        )
        cursor = self.conn.execute(
            """
            DELETE FROM progress_backups
            WHERE user_id = ? AND workstation_id = ? AND id NOT IN (
                SELECT id FROM progress_backups
                WHERE user_id = ? AND workstation_id = ?
                ORDER BY created_at DESC, id DESC
                LIMIT ?
            )
            """,
            (snapshot.user_id, snapshot.workstation_id, snapshot.user_id, snapshot.workstation_id, max_backups),
        )
        self.conn.commit()

        if cursor.rowcount > 0:
            logger.debug(f"Rotated out {cursor.rowcount} backups for {snapshot.user_id}/{snapshot.workstation_id}")
        return max(cursor.rowcount, 0)

    def list_backups(self, user_id: str, workstation_id: str) -> list[BackupRecord]:
        """Backups for one (user, workstation), newest first."""
        rows = self.conn.execute(
            """
            SELECT id, user_id, workstation_id, payload, created_at FROM progress_backups
            WHERE user_id = ? AND workstation_id = ?
            ORDER BY created_at DESC, id DESC
            """,
            (user_id, workstation_id),
        ).fetchall()
        return [self._backup_from_row(r) for r in rows]

    def get_backup(self, backup_id: int) -> BackupRecord:
        row = self.conn.execute(
            "SELECT id, user_id, workstation_id, payload, created_at FROM progress_backups WHERE id = ?",
            (backup_id,),
        ).fetchone()
        if row is None:
            raise NotFoundError("backup", str(backup_id))
        return self._backup_from_row(row)

    @staticmethod
    def _backup_from_row(row: sqlite3.Row) -> BackupRecord:
        return BackupRecord(
            id=row["id"],
            user_id=row["user_id"],
            workstation_id=row["workstation_id"],
            created_at=row["created_at"],
            snapshot=ProgressSnapshot.model_validate_json(row["payload"]),
        )

    # =========================================================================
    # Grants & Certificates
    # =========================================================================

    def get_grants(self, user_id: str) -> list[AchievementGrant]:
        rows = self.conn.execute(
            "SELECT user_id, achievement_id, unlocked_at FROM achievement_grants WHERE user_id = ? ORDER BY unlocked_at",
            (user_id,),
        ).fetchall()
        return [AchievementGrant(**dict(r)) for r in rows]

    def insert_grant(self, grant: AchievementGrant) -> AchievementGrant:
        try:
            self.conn.execute(
                "INSERT INTO achievement_grants (user_id, achievement_id, unlocked_at) VALUES (?, ?, ?)",
                (grant.user_id, grant.achievement_id, grant.unlocked_at),
            )
            self.conn.commit()
        except sqlite3.IntegrityError as exc:
            self.conn.rollback()
            row = self.conn.execute(
                "SELECT user_id, achievement_id, unlocked_at FROM achievement_grants WHERE user_id = ? AND achievement_id = ?",
                (grant.user_id, grant.achievement_id),
            ).fetchone()
            raise DuplicateSubmission(
                f"Achievement {grant.achievement_id} already granted",
                AchievementGrant(**dict(row)) if row else None,
            ) from exc
        return grant

    def get_certificates(self, user_id: str) -> list[Certificate]:
        rows = self.conn.execute(
            """
            SELECT id, user_id, workstation_id, workstation_name, certificate_number, granted_at
            FROM certificates WHERE user_id = ? ORDER BY granted_at
            """,
            (user_id,),
        ).fetchall()
        return [Certificate(**{k: (r[k] or "") if k == "workstation_name" else r[k] for k in r.keys()}) for r in rows]

    def insert_certificate(self, certificate: Certificate) -> Certificate:
        try:
            self.conn.execute(
                """
                INSERT INTO certificates (user_id, workstation_id, id, workstation_name, certificate_number, granted_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    certificate.user_id,
                    certificate.workstation_id,
                    certificate.id,
                    certificate.workstation_name,
                    certificate.certificate_number,
                    certificate.granted_at,
                ),
            )
            self.conn.commit()
        except sqlite3.IntegrityError as exc:
            self.conn.rollback()
            existing = [c for c in self.get_certificates(certificate.user_id) if c.workstation_id == certificate.workstation_id]
            raise DuplicateSubmission(
                f"Certificate for {certificate.workstation_id} already issued",
                existing[0] if existing else None,
            ) from exc
        return certificate

    # =========================================================================
    # Career Profiles
    # =========================================================================

    def load_profile(self, user_id: str) -> CareerProfile | None:
        row = self.conn.execute("SELECT payload FROM career_profiles WHERE user_id = ?", (user_id,)).fetchone()
        return CareerProfile.from_dict(json.loads(row["payload"])) if row else None

    def save_profile(self, profile: CareerProfile) -> None:
        self.conn.execute(
            """
            INSERT INTO career_profiles (user_id, payload, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET payload = excluded.payload, updated_at = excluded.updated_at
            """,
            (profile.user_id, json.dumps(profile.to_dict()), now_ms()),
        )
        self.conn.commit()
