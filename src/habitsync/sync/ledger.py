"""Change Ledger contract.

The sync core needs exactly these capabilities from storage. The SQLite
implementation lives in habitsync.server.database.Database.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from habitsync.core.types import EntityKind
from habitsync.sync.changes import ChangeSet


class ChangeLedger(Protocol):
    """Persistence capabilities consumed by the sync core."""

    def find_by_id(self, kind: EntityKind, record_id: str) -> Any:
        """Get a record by ID, tombstoned or not.

        Raises:
            NotFoundError: If no row has this ID.
        """
        ...

    def insert(self, kind: EntityKind, record: Any) -> Any:
        """Insert a new record, stamping updated_at.

        Raises:
            AlreadyExistsError: If a row with the same ID exists.
        """
        ...

    def upsert(self, kind: EntityKind, record: Any) -> Any:
        """Replace (or insert) a record's payload, stamping updated_at."""
        ...

    def tombstone(self, kind: EntityKind, record_id: str, at: datetime) -> None:
        """Mark a live record as deleted at ``at``.

        Raises:
            NotFoundError: If the record is absent or already tombstoned.
        """
        ...

    def changes_since(
        self, kind: EntityKind, user_id: str, since: datetime
    ) -> ChangeSet[Any]:
        """Get a user's records of one kind touched after ``since``."""
        ...
