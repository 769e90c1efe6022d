"""Shared types for habitsync.

This module defines enums and time helpers used by both the sync core and
the server.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum


class EntityKind(str, Enum):
    """Kind of synchronizable record.

    The value doubles as the key used in wire payloads.
    """

    HABIT = "habits"
    ENTRY = "entries"


class ChangeKind(str, Enum):
    """Partition a changed record falls into for a given watermark."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC.

    SQLite drops tzinfo on read, and clients may send naive timestamps;
    both are interpreted as UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 / RFC 3339 timestamp into aware UTC.

    Raises:
        ValueError: If the string is not a valid timestamp.
    """
    return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
