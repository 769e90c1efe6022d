"""Tests for the Delta Query Service."""

from __future__ import annotations

from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from habitsync.core.errors import InvalidInputError
from habitsync.core.types import EntityKind
from habitsync.server.database import Database
from habitsync.sync.changes import ChangeSet
from habitsync.sync.delta import DeltaQueryService
from tests.helpers import OTHER_USER, USER, make_entry, make_habit

HABIT = EntityKind.HABIT
ENTRY = EntityKind.ENTRY


@pytest.fixture
def db(tmp_path: Path) -> Generator[Database, None, None]:
    """Create a test database."""
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture
def service(db: Database) -> DeltaQueryService:
    """Delta service over the test database."""
    return DeltaQueryService(db)


def ids(records: list) -> set[str]:
    """IDs of a list of records."""
    return {r.id for r in records}


def hours_ago(hours: float) -> datetime:
    return datetime.now(UTC) - timedelta(hours=hours)


class TestGetChanges:
    """Tests for DeltaQueryService.get_changes()."""

    def test_empty_ledger(self, service: DeltaQueryService) -> None:
        """No data yields empty lists, not an error."""
        changes = service.get_changes(USER, hours_ago(1))

        assert changes.is_empty()
        assert changes.habits.created == []
        assert changes.entries.deleted == []

    def test_requires_user_id(self, service: DeltaQueryService) -> None:
        """An empty user ID is invalid input."""
        with pytest.raises(InvalidInputError):
            service.get_changes("", hours_ago(1))

    def test_new_habit_is_created_only(self, db: Database, service: DeltaQueryService) -> None:
        """A habit created now shows up in created, not updated or deleted."""
        db.insert(HABIT, make_habit("h2"))

        changes = service.get_changes(USER, hours_ago(1))

        assert ids(changes.habits.created) == {"h2"}
        assert changes.habits.updated == []
        assert changes.habits.deleted == []

    def test_old_habit_modified_is_updated(
        self, db: Database, service: DeltaQueryService
    ) -> None:
        """A habit created before the watermark and modified after is updated."""
        db.insert(HABIT, make_habit(created_at=hours_ago(2)))

        changes = service.get_changes(USER, hours_ago(1))

        assert ids(changes.habits.updated) == {"h1"}
        assert changes.habits.created == []

    def test_deleted_habit_sent_by_id(self, db: Database, service: DeltaQueryService) -> None:
        """A tombstoned habit appears in deleted as a bare ID only."""
        db.insert(HABIT, make_habit())
        db.tombstone(HABIT, "h1", datetime.now(UTC))

        changes = service.get_changes(USER, hours_ago(1))

        assert changes.habits.deleted == ["h1"]
        assert changes.habits.created == []
        assert changes.habits.updated == []

    def test_tombstone_before_watermark_omitted(
        self, db: Database, service: DeltaQueryService
    ) -> None:
        """Deletions older than the watermark are not re-sent."""
        db.insert(HABIT, make_habit(created_at=hours_ago(3)))
        db.tombstone(HABIT, "h1", hours_ago(2))

        changes = service.get_changes(USER, hours_ago(1))

        assert changes.is_empty()

    def test_future_watermark(self, db: Database, service: DeltaQueryService) -> None:
        """A watermark in the future yields nothing."""
        db.insert(HABIT, make_habit())

        changes = service.get_changes(USER, datetime.now(UTC) + timedelta(days=1))

        assert changes.is_empty()

    def test_new_entry_is_created(self, db: Database, service: DeltaQueryService) -> None:
        """Entries are classified by their server-side creation time."""
        db.insert(HABIT, make_habit(created_at=hours_ago(5)))
        since = datetime.now(UTC)
        db.insert(ENTRY, make_entry())

        changes = service.get_changes(USER, since)

        assert ids(changes.entries.created) == {"e1"}
        assert ids(changes.habits.updated) == set()

    def test_only_users_records(self, db: Database, service: DeltaQueryService) -> None:
        """Other users' habits and their entries are excluded."""
        db.insert(HABIT, make_habit("mine"))
        db.insert(HABIT, make_habit("theirs", user_id=OTHER_USER))
        db.insert(ENTRY, make_entry("e-mine", habit_id="mine"))
        db.insert(ENTRY, make_entry("e-theirs", habit_id="theirs"))

        changes = service.get_changes(USER, hours_ago(1))

        assert ids(changes.habits.created) == {"mine"}
        assert ids(changes.entries.created) == {"e-mine"}

    def test_partition_invariant(self, db: Database, service: DeltaQueryService) -> None:
        """created/updated/deleted are disjoint and cover every touched record."""
        since = hours_ago(1)
        db.insert(HABIT, make_habit("untouched", created_at=hours_ago(10)))
        db.tombstone(HABIT, "untouched", hours_ago(9))
        db.insert(HABIT, make_habit("new"))
        db.insert(HABIT, make_habit("edited", created_at=hours_ago(4)))
        db.insert(HABIT, make_habit("created-then-deleted"))
        db.tombstone(HABIT, "created-then-deleted", datetime.now(UTC))
        db.insert(HABIT, make_habit("old-deleted", created_at=hours_ago(6)))
        db.tombstone(HABIT, "old-deleted", datetime.now(UTC))

        habits = service.get_changes(USER, since).habits

        created, updated, deleted = ids(habits.created), ids(habits.updated), set(habits.deleted)
        assert created.isdisjoint(updated)
        assert created.isdisjoint(deleted)
        assert updated.isdisjoint(deleted)
        assert created | updated | deleted == {
            "new",
            "edited",
            "created-then-deleted",
            "old-deleted",
        }
        assert deleted == {"created-then-deleted", "old-deleted"}


class TestLedgerFailures:
    """Tests with a mocked ledger."""

    def test_queries_each_kind(self) -> None:
        """Both kinds are queried for the same user and watermark."""
        ledger = MagicMock()
        ledger.changes_since.return_value = ChangeSet()
        since = hours_ago(1)

        DeltaQueryService(ledger).get_changes(USER, since)

        assert [c.args for c in ledger.changes_since.call_args_list] == [
            (HABIT, USER, since),
            (ENTRY, USER, since),
        ]

    def test_failure_propagates_without_partial_result(self) -> None:
        """A failing entry query fails the whole pull."""
        ledger = MagicMock()
        ledger.changes_since.side_effect = [ChangeSet(), OSError("database is locked")]

        with pytest.raises(OSError, match="database is locked"):
            DeltaQueryService(ledger).get_changes(USER, hours_ago(1))
