"""
SQL-backed RemoteStore.

Writes are last-writer-wins on updated_at: a push older than the stored row
is ignored, an equal one is a retried push and is a no-op. Behavior events
are merged by id so a re-sent batch does not duplicate rows.
"""

from __future__ import annotations

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vstation.core.errors import SyncFailure
from vstation.core.models import BehaviorEvent, ProgressSnapshot
from vstation.db.database import async_session_scope
from vstation.db.models import BehaviorLogRecord, ProgressRecord
from vstation.sync.remote import idempotency_key


class SqlRemoteStore:
    """RemoteStore over SQLAlchemy (PostgreSQL via asyncpg in production)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._factory = session_factory

    async def fetch_snapshot(self, user_id: str, workstation_id: str) -> ProgressSnapshot | None:
        try:
            async with async_session_scope(self._factory) as session:
                record = await session.scalar(
                    select(ProgressRecord).where(
                        ProgressRecord.user_id == user_id,
                        ProgressRecord.workstation_id == workstation_id,
                    )
                )
                if record is None:
                    return None
                return ProgressSnapshot.model_validate(record.payload)
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Remote fetch failed for {user_id}/{workstation_id}: {e}")
            raise SyncFailure(f"Remote fetch failed: {e}") from e

    async def push_snapshot(self, snapshot: ProgressSnapshot) -> None:
        try:
            async with async_session_scope(self._factory) as session:
                record = await session.scalar(
                    select(ProgressRecord)
                    .where(
                        ProgressRecord.user_id == snapshot.user_id,
                        ProgressRecord.workstation_id == snapshot.workstation_id,
                    )
                    .with_for_update()
                )
                payload = snapshot.model_dump(mode="json")

                if record is None:
                    session.add(
                        ProgressRecord(
                            user_id=snapshot.user_id,
                            workstation_id=snapshot.workstation_id,
                            payload=payload,
                            updated_at=snapshot.updated_at,
                            idempotency_key=idempotency_key(snapshot),
                        )
                    )
                elif snapshot.updated_at > record.updated_at:
                    record.payload = payload
                    record.updated_at = snapshot.updated_at
                    record.idempotency_key = idempotency_key(snapshot)
                else:
                    logger.debug(
                        "Ignoring push {} (stored version {})",
                        idempotency_key(snapshot),
                        record.updated_at,
                    )
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Remote push failed for {snapshot.user_id}/{snapshot.workstation_id}: {e}")
            raise SyncFailure(f"Remote push failed: {e}") from e

    async def append_behavior_events(self, events: list[BehaviorEvent]) -> None:
        if not events:
            return
        try:
            async with async_session_scope(self._factory) as session:
                for event in events:
                    await session.merge(
                        BehaviorLogRecord(
                            id=event.id,
                            session_id=event.session_id,
                            user_id=event.user_id,
                            workstation_id=event.workstation_id,
                            step_id=event.step_id,
                            kind=event.kind.value,
                            timestamp=event.timestamp,
                            duration_ms=event.duration_ms,
                            details=event.model_dump(mode="json")["details"],
                        )
                    )
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Behavior log upload failed ({len(events)} events): {e}")
            raise SyncFailure(f"Behavior log upload failed: {e}") from e
