"""SQLAlchemy models for the habitsync server.

Habits and entries are never deleted physically: ``deleted_at`` is the
tombstone that lets deletions travel in future deltas.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from habitsync.core.types import as_utc


class UTCDateTime(TypeDecorator[datetime]):
    """DateTime stored as naive UTC and loaded back as aware UTC.

    SQLite has no timezone support, so values are normalized on the way in
    to keep string comparisons in queries consistent.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        return as_utc(value).replace(tzinfo=None)

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        return value.replace(tzinfo=UTC)


def _now() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""


class Habit(Base):
    """A user's habit. Business fields are opaque to the sync core."""

    __tablename__ = "habits"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    frequency: Mapped[str] = mapped_column(String(20), nullable=False)
    specific_days: Mapped[list[int] | None] = mapped_column(JSON, nullable=True)
    specific_dates: Mapped[list[int] | None] = mapped_column(JSON, nullable=True)
    carry_over: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_negative: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    target_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_now, nullable=False)
    archived_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Indexes
    __table_args__ = (
        Index("idx_habits_user", "user_id"),
        Index("idx_habits_user_updated", "user_id", "updated_at"),
    )


class HabitEntry(Base):
    """A completion of a habit. Ownership follows the parent habit."""

    __tablename__ = "habit_entries"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    habit_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("habits.id", ondelete="CASCADE"), nullable=False
    )
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)
    completed_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    value: Mapped[float | None] = mapped_column(Float, nullable=True)
    # Server-side creation stamp; not part of the wire payload
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_now, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Indexes
    __table_args__ = (
        Index("idx_entries_habit", "habit_id"),
        Index("idx_entries_updated", "updated_at"),
    )


class Token(Base):
    """Bearer token resolving to an already-authenticated user."""

    __tablename__ = "tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_now, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    revoked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Indexes
    __table_args__ = (Index("idx_tokens_hash", "token_hash"),)
