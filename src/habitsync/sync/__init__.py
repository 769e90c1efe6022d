"""Sync core - delta queries, batch reconciliation and conflict resolution."""

from habitsync.sync.changes import BatchReport, ChangeSet, SyncChanges
from habitsync.sync.delta import DeltaQueryService, next_watermark
from habitsync.sync.ledger import ChangeLedger
from habitsync.sync.reconciler import BatchReconciler
from habitsync.sync.resolution import classify, should_apply_update

__all__ = [
    "BatchReconciler",
    "BatchReport",
    "ChangeLedger",
    "ChangeSet",
    "DeltaQueryService",
    "SyncChanges",
    "classify",
    "next_watermark",
    "should_apply_update",
]
