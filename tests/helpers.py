"""Builders for sync payloads used across tests."""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Any

from habitsync.server.schemas import EntryPayload, HabitPayload
from habitsync.sync.changes import ChangeSet, SyncChanges

USER = "user-1"
OTHER_USER = "user-2"


def make_habit(
    habit_id: str = "h1",
    user_id: str = USER,
    name: str = "Read",
    updated_at: datetime | None = None,
    **overrides: Any,
) -> HabitPayload:
    """Build a habit payload as a client would send it."""
    now = datetime.now(UTC)
    fields: dict[str, Any] = {
        "id": habit_id,
        "user_id": user_id,
        "name": name,
        "type": "BOOLEAN",
        "frequency": "DAILY",
        "created_at": now,
        "updated_at": updated_at or now,
    }
    fields.update(overrides)
    return HabitPayload(**fields)


def make_entry(
    entry_id: str = "e1",
    habit_id: str = "h1",
    updated_at: datetime | None = None,
    value: float | None = None,
) -> EntryPayload:
    """Build an entry payload as a client would send it."""
    now = datetime.now(UTC)
    return EntryPayload(
        id=entry_id,
        habit_id=habit_id,
        scheduled_date=date(2025, 3, 1),
        completed_at=now,
        value=value,
        updated_at=updated_at or now,
    )


def habit_batch(
    created: list[HabitPayload] | None = None,
    updated: list[HabitPayload] | None = None,
    deleted: list[str] | None = None,
) -> SyncChanges:
    """Batch containing only habit changes."""
    return SyncChanges(
        habits=ChangeSet(created=created or [], updated=updated or [], deleted=deleted or [])
    )


def entry_batch(
    created: list[EntryPayload] | None = None,
    updated: list[EntryPayload] | None = None,
    deleted: list[str] | None = None,
) -> SyncChanges:
    """Batch containing only entry changes."""
    return SyncChanges(
        entries=ChangeSet(created=created or [], updated=updated or [], deleted=deleted or [])
    )


def hide_rows_from_get(monkeypatch: Any, model: type) -> None:
    """Make Session.get miss rows of a model, as if they were committed after the lookup."""
    from sqlalchemy.orm import Session

    original_get = Session.get

    def get(self: Session, entity: Any, ident: Any, **kwargs: Any) -> Any:
        if entity is model:
            return None
        return original_get(self, entity, ident, **kwargs)

    monkeypatch.setattr(Session, "get", get)
