"""Containers for deltas (pull) and batches (push).

A pull result and a push batch share the same shape: per entity kind,
lists of created and updated records plus the IDs of deleted ones.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from habitsync.core.types import EntityKind

T = TypeVar("T")


@dataclass
class ChangeSet(Generic[T]):
    """Created/updated records and deleted IDs for one entity kind."""

    created: list[T] = field(default_factory=list)
    updated: list[T] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.created) + len(self.updated) + len(self.deleted)


@dataclass
class SyncChanges:
    """Changes across all synchronizable kinds.

    Used both as the delta returned to a pulling client and as the batch
    a pushing client proposes.
    """

    habits: ChangeSet[Any] = field(default_factory=ChangeSet)
    entries: ChangeSet[Any] = field(default_factory=ChangeSet)

    def for_kind(self, kind: EntityKind) -> ChangeSet[Any]:
        """Get the change set for an entity kind."""
        if kind is EntityKind.HABIT:
            return self.habits
        return self.entries

    def is_empty(self) -> bool:
        """Check if there are no changes at all."""
        return len(self.habits) == 0 and len(self.entries) == 0


@dataclass
class BatchReport:
    """Outcome counters for an applied batch.

    Attributes:
        applied: Records inserted, replaced or tombstoned.
        discarded: Updates rejected by Last-Write-Wins.
        skipped: Duplicate creates and deletes of absent/tombstoned records.
    """

    applied: int = 0
    discarded: int = 0
    skipped: int = 0
