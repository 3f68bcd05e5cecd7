"""
Remote Store Models.

SQLAlchemy models backing the SQL remote store:
- One progress row per (user, workstation), payload kept as JSON
- Append-only behavior log
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, BigInteger, Index, Integer, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JsonType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


class ProgressRecord(Base):
    """Remote copy of a progress snapshot."""

    __tablename__ = "progress_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    workstation_id: Mapped[str] = mapped_column(Text, nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JsonType, nullable=False)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    idempotency_key: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(default=func.now())
    modified_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "workstation_id", name="uq_progress_user_workstation"),
        Index("idx_progress_updated", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<ProgressRecord user={self.user_id} workstation={self.workstation_id} updated_at={self.updated_at}>"


class BehaviorLogRecord(Base):
    """One learner action as uploaded by the tracker."""

    __tablename__ = "behavior_logs"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    session_id: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[str | None] = mapped_column(Text)
    workstation_id: Mapped[str | None] = mapped_column(Text)
    step_id: Mapped[str | None] = mapped_column(Text)
    kind: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    duration_ms: Mapped[int | None] = mapped_column(BigInteger)
    details: Mapped[dict[str, Any]] = mapped_column(JsonType, default=dict)

    __table_args__ = (
        Index("idx_behavior_session_time", "session_id", "timestamp"),
        Index("idx_behavior_kind", "kind"),
    )

    def __repr__(self) -> str:
        return f"<BehaviorLogRecord id={self.id} kind={self.kind} session={self.session_id}>"
