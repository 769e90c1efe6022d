"""Conflict-resolution primitives.

Both functions are pure: they look only at timestamps and never touch
storage, so the ledger and the reconciler share one definition of
"changed since" and "newer than".

Partition rule for a watermark ``since``:

| deleted_at      | created_at  | updated_at  | Result  |
|-----------------|-------------|-------------|---------|
| > since         | *           | *           | DELETED |
| <= since        | *           | *           | None    |
| None            | > since     | *           | CREATED |
| None            | <= since    | > since     | UPDATED |
| None            | <= since    | <= since    | None    |
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from habitsync.core.types import ChangeKind, as_utc


class SyncRecord(Protocol):
    """Timestamps every synchronizable record carries."""

    id: str
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None


def classify(record: SyncRecord, since: datetime) -> ChangeKind | None:
    """Decide which delta partition a record belongs to.

    Args:
        record: Record to classify.
        since: Client watermark.

    Returns:
        The partition, or None if the record was not touched after ``since``.
    """
    since = as_utc(since)
    if record.deleted_at is not None:
        # A tombstone older than the watermark was already reported.
        return ChangeKind.DELETED if as_utc(record.deleted_at) > since else None
    if as_utc(record.created_at) > since:
        return ChangeKind.CREATED
    if as_utc(record.updated_at) > since:
        return ChangeKind.UPDATED
    return None


def should_apply_update(server_time: datetime, client_time: datetime) -> bool:
    """Last-Write-Wins: the client wins only with a strictly later timestamp."""
    return as_utc(client_time) > as_utc(server_time)
