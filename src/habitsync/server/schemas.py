"""Pydantic schemas for the sync API.

Pull responses and push requests share one shape::

    {
        "habits": {"created": [...], "updated": [...], "deleted": ["id", ...]},
        "entries": {"created": [...], "updated": [...], "deleted": ["id", ...]}
    }
"""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from habitsync.server.models import Habit, HabitEntry
from habitsync.sync.changes import ChangeSet, SyncChanges

# === Record payloads ===


class HabitPayload(BaseModel):
    """Full habit record as exchanged with clients."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    name: str
    description: str = ""
    type: str
    frequency: str
    specific_days: list[int] | None = None
    specific_dates: list[int] | None = None
    carry_over: bool = False
    is_negative: bool = False
    target_value: float | None = None
    created_at: datetime | None = None
    updated_at: datetime
    archived_at: datetime | None = None


class EntryPayload(BaseModel):
    """Full habit entry record as exchanged with clients."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    habit_id: str
    scheduled_date: date
    completed_at: datetime
    value: float | None = None
    updated_at: datetime


# === Change sets ===


class HabitChanges(BaseModel):
    """Habit changes; deleted holds bare IDs."""

    created: list[HabitPayload] = Field(default_factory=list)
    updated: list[HabitPayload] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)


class EntryChanges(BaseModel):
    """Entry changes; deleted holds bare IDs."""

    created: list[EntryPayload] = Field(default_factory=list)
    updated: list[EntryPayload] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)


class SyncChangesResponse(BaseModel):
    """Response for GET /api/sync/changes."""

    habits: HabitChanges
    entries: EntryChanges
    server_time: datetime  # Suggested watermark for the next pull


class SyncBatchRequest(BaseModel):
    """Request body for POST /api/sync/batch."""

    habits: HabitChanges = Field(default_factory=HabitChanges)
    entries: EntryChanges = Field(default_factory=EntryChanges)


class SyncBatchResponse(BaseModel):
    """Response for a successfully applied batch."""

    message: str


# === Health schema ===


class HealthResponse(BaseModel):
    """Health check response."""

    status: str


# === Converters ===


def habit_to_payload(habit: Habit) -> HabitPayload:
    """Convert Habit to wire payload."""
    return HabitPayload.model_validate(habit)


def entry_to_payload(entry: HabitEntry) -> EntryPayload:
    """Convert HabitEntry to wire payload."""
    return EntryPayload.model_validate(entry)


def changes_to_response(changes: SyncChanges, server_time: datetime) -> SyncChangesResponse:
    """Convert a delta to the pull response."""
    return SyncChangesResponse(
        habits=HabitChanges(
            created=[habit_to_payload(h) for h in changes.habits.created],
            updated=[habit_to_payload(h) for h in changes.habits.updated],
            deleted=list(changes.habits.deleted),
        ),
        entries=EntryChanges(
            created=[entry_to_payload(e) for e in changes.entries.created],
            updated=[entry_to_payload(e) for e in changes.entries.updated],
            deleted=list(changes.entries.deleted),
        ),
        server_time=server_time,
    )


def request_to_batch(request: SyncBatchRequest) -> SyncChanges:
    """Convert a push request to a batch for the reconciler.

    The payload models are passed through as records: they carry the
    ``id``, owner and ``updated_at`` the reconciler reads and the fields
    the ledger copies.
    """
    return SyncChanges(
        habits=ChangeSet(
            created=list(request.habits.created),
            updated=list(request.habits.updated),
            deleted=list(request.habits.deleted),
        ),
        entries=ChangeSet(
            created=list(request.entries.created),
            updated=list(request.entries.updated),
            deleted=list(request.entries.deleted),
        ),
    )
