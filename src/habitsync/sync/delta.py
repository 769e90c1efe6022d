"""Delta Query Service: what changed for a user since a watermark."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from habitsync.core.errors import InvalidInputError
from habitsync.core.types import EntityKind, utcnow
from habitsync.sync.changes import SyncChanges
from habitsync.sync.ledger import ChangeLedger

logger = logging.getLogger(__name__)


def next_watermark(margin: float) -> datetime:
    """Watermark to advertise to a client for its next pull.

    Writes stamp updated_at before they commit, so a record stamped just
    before a pull can become visible just after it. Backing the watermark
    off by a margin makes the next pull send such records; clients apply
    deltas idempotently and tolerate the overlap.

    Args:
        margin: Seconds to subtract from the server clock. Must exceed the
            longest write transaction.
    """
    return utcnow() - timedelta(seconds=margin)


class DeltaQueryService:
    """Assembles a combined delta across all synchronizable kinds."""

    def __init__(self, ledger: ChangeLedger) -> None:
        self._ledger = ledger

    def get_changes(self, user_id: str, since: datetime) -> SyncChanges:
        """Get every change for a user since a watermark.

        Read-only. Ledger failures propagate as-is; no partial delta is
        ever returned.

        Args:
            user_id: Authenticated user ID.
            since: Watermark; a future value simply yields empty lists.

        Returns:
            SyncChanges with disjoint created/updated/deleted per kind.

        Raises:
            InvalidInputError: If user_id is empty.
        """
        if not user_id:
            raise InvalidInputError("user_id is required")

        habits = self._ledger.changes_since(EntityKind.HABIT, user_id, since)
        entries = self._ledger.changes_since(EntityKind.ENTRY, user_id, since)

        logger.debug(
            "Delta for user %s since %s: %d habit(s), %d entry change(s)",
            user_id,
            since.isoformat(),
            len(habits),
            len(entries),
        )
        return SyncChanges(habits=habits, entries=entries)
