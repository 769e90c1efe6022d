"""Batch Reconciler: applies a client's proposed changes to server state.

Records are applied one at a time in a fixed order:

1. Habit creations, updates, deletions
2. Entry creations, updates, deletions

Habits go first because entries reference them, and each step sees the
effects of the previous ones. There is no transaction around the batch:
the first hard error aborts, and everything applied before it stays
committed. Resubmitting the whole batch is safe because duplicate creates
are skipped, updates are decided by Last-Write-Wins, and deletes of
tombstoned records are no-ops.

Ownership is checked for habits only. Entries inherit ownership from
their habit and are not re-validated here.
"""

from __future__ import annotations

import logging
from typing import Any

from habitsync.core.errors import (
    AlreadyExistsError,
    InvalidInputError,
    NotFoundError,
    UnauthorizedError,
)
from habitsync.core.types import EntityKind, utcnow
from habitsync.sync.changes import BatchReport, SyncChanges
from habitsync.sync.ledger import ChangeLedger
from habitsync.sync.resolution import should_apply_update

logger = logging.getLogger(__name__)

# Kinds whose records carry a user_id that must match the caller
OWNED_KINDS = frozenset({EntityKind.HABIT})

APPLY_ORDER = (EntityKind.HABIT, EntityKind.ENTRY)


class BatchReconciler:
    """Applies push batches against the Change Ledger."""

    def __init__(self, ledger: ChangeLedger) -> None:
        self._ledger = ledger

    def apply_batch(self, user_id: str, batch: SyncChanges) -> BatchReport:
        """Apply a batch of proposed changes for a user.

        Args:
            user_id: Authenticated user ID.
            batch: Client-proposed creations, updates and deletions.

        Returns:
            BatchReport with applied/discarded/skipped counters.

        Raises:
            InvalidInputError: If user_id is empty.
            UnauthorizedError: If a habit belongs to another user.
            Exception: Any ledger failure, unchanged.
        """
        if not user_id:
            raise InvalidInputError("user_id is required")

        report = BatchReport()
        try:
            for kind in APPLY_ORDER:
                changes = batch.for_kind(kind)
                for record in changes.created:
                    self._apply_create(kind, user_id, record, report)
                for record in changes.updated:
                    self._apply_update(kind, user_id, record, report)
                for record_id in changes.deleted:
                    self._apply_delete(kind, user_id, record_id, report)
        except Exception as e:
            logger.warning(
                "Batch for user %s aborted after %d applied record(s): %s",
                user_id,
                report.applied,
                e,
            )
            raise

        logger.info(
            "Batch for user %s: %d applied, %d discarded, %d skipped",
            user_id,
            report.applied,
            report.discarded,
            report.skipped,
        )
        return report

    def _check_owner(self, kind: EntityKind, record: Any, user_id: str, record_id: str) -> None:
        """Raise UnauthorizedError if an owned record belongs to someone else."""
        if kind in OWNED_KINDS and record.user_id != user_id:
            raise UnauthorizedError(f"{kind.value} {record_id} does not belong to user {user_id}")

    def _apply_create(
        self, kind: EntityKind, user_id: str, record: Any, report: BatchReport
    ) -> None:
        self._check_owner(kind, record, user_id, record.id)
        try:
            self._ledger.insert(kind, record)
        except AlreadyExistsError:
            logger.debug("Skipping duplicate create of %s %s", kind.value, record.id)
            report.skipped += 1
            return
        report.applied += 1

    def _apply_update(
        self, kind: EntityKind, user_id: str, record: Any, report: BatchReport
    ) -> None:
        self._check_owner(kind, record, user_id, record.id)

        try:
            existing = self._ledger.find_by_id(kind, record.id)
        except NotFoundError:
            # Edited offline before its create reached the server
            self._ledger.upsert(kind, record)
            report.applied += 1
            return

        self._check_owner(kind, existing, user_id, record.id)

        if not should_apply_update(existing.updated_at, record.updated_at):
            logger.debug(
                "Discarding stale update of %s %s (client %s <= server %s)",
                kind.value,
                record.id,
                record.updated_at.isoformat(),
                existing.updated_at.isoformat(),
            )
            report.discarded += 1
            return

        self._ledger.upsert(kind, record)
        report.applied += 1

    def _apply_delete(
        self, kind: EntityKind, user_id: str, record_id: str, report: BatchReport
    ) -> None:
        try:
            existing = self._ledger.find_by_id(kind, record_id)
        except NotFoundError:
            report.skipped += 1
            return

        if existing.deleted_at is not None:
            report.skipped += 1
            return

        self._check_owner(kind, existing, user_id, record_id)

        try:
            self._ledger.tombstone(kind, record_id, utcnow())
        except NotFoundError:
            # Tombstoned concurrently
            report.skipped += 1
            return
        report.applied += 1
