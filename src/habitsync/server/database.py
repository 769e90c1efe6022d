"""Server database using SQLAlchemy with SQLite.

This module provides:
- The Change Ledger used by the sync core (find, insert, upsert,
  tombstone, changes since a watermark)
- Bearer token resolution for the sync endpoints
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine, event, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from habitsync.core.errors import AlreadyExistsError, NotFoundError
from habitsync.core.types import ChangeKind, EntityKind, as_utc
from habitsync.server.models import Base, Habit, HabitEntry, Token
from habitsync.sync.changes import ChangeSet
from habitsync.sync.resolution import classify

if TYPE_CHECKING:
    from sqlalchemy import Engine

SyncModel = Habit | HabitEntry

MODELS: dict[EntityKind, type[Habit] | type[HabitEntry]] = {
    EntityKind.HABIT: Habit,
    EntityKind.ENTRY: HabitEntry,
}

# Columns copied verbatim from a client payload on insert/upsert
PAYLOAD_FIELDS: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.HABIT: (
        "user_id",
        "name",
        "description",
        "type",
        "frequency",
        "specific_days",
        "specific_dates",
        "carry_over",
        "is_negative",
        "target_value",
        "created_at",
        "archived_at",
    ),
    EntityKind.ENTRY: (
        "habit_id",
        "scheduled_date",
        "completed_at",
        "value",
    ),
}


def hash_token(token: str) -> str:
    """Hash a token using SHA-256.

    Args:
        token: Raw token string.

    Returns:
        Hex-encoded SHA-256 hash.
    """
    return hashlib.sha256(token.encode()).hexdigest()


def _enable_foreign_keys(dbapi_conn: Any, _record: Any) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _copy_payload(kind: EntityKind, source: Any, target: SyncModel) -> None:
    for name in PAYLOAD_FIELDS[kind]:
        value = getattr(source, name)
        if isinstance(value, datetime):
            value = as_utc(value)
        setattr(target, name, value)


class Database:
    """SQLAlchemy database for habits, entries and tokens.

    Uses SQLite with WAL mode for better concurrency with multiple readers.
    Every operation runs in its own short session and returns detached
    objects.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the database.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # check_same_thread=False: FastAPI runs sync routes in a thread pool
        self._engine: Engine = create_engine(
            f"sqlite:///{self._db_path}",
            connect_args={"check_same_thread": False},
            echo=False,
        )

        # foreign_keys is per connection, so it is set on every new one
        event.listen(self._engine, "connect", _enable_foreign_keys)

        # Enable WAL mode
        with self._engine.connect() as conn:
            conn.exec_driver_sql("PRAGMA journal_mode=WAL")

        # Create tables if they don't exist
        Base.metadata.create_all(self._engine)

    @property
    def path(self) -> Path:
        """Path to the SQLite database file."""
        return self._db_path

    def close(self) -> None:
        """Close the database connection."""
        self._engine.dispose()

    def _session(self) -> Session:
        """Create a new database session."""
        return Session(self._engine)

    # === Change ledger ===

    def find_by_id(self, kind: EntityKind, record_id: str) -> SyncModel:
        """Get a record by ID, including tombstoned ones.

        Args:
            kind: Entity kind.
            record_id: Record ID.

        Returns:
            Detached record.

        Raises:
            NotFoundError: If no row has this ID.
        """
        with self._session() as session:
            row = session.get(MODELS[kind], record_id)
            if row is None:
                raise NotFoundError(f"{kind.value} {record_id} not found")
            session.expunge(row)
            return row

    def insert(self, kind: EntityKind, record: Any) -> SyncModel:
        """Insert a new record from a client payload.

        updated_at is stamped to now. Entries also get their server-side
        created_at; habits keep the client's created_at when given.

        Args:
            kind: Entity kind.
            record: Object carrying ``id`` and the kind's payload fields.

        Returns:
            Inserted record.

        Raises:
            AlreadyExistsError: If a row with the same ID exists, including
                one committed concurrently after the existence check.
            IntegrityError: If an entry references an unknown habit.
        """
        model = MODELS[kind]
        now = datetime.now(UTC)
        with self._session() as session:
            if session.get(model, record.id) is not None:
                raise AlreadyExistsError(f"{kind.value} {record.id} already exists")

            row = model(id=record.id)
            _copy_payload(kind, record, row)
            if kind is EntityKind.ENTRY or row.created_at is None:
                row.created_at = now
            row.updated_at = now
            row.deleted_at = None
            session.add(row)
            try:
                session.commit()
            except IntegrityError as e:
                # A concurrent insert of the same ID won the race; foreign
                # key failures leave no row behind and are re-raised
                session.rollback()
                exists = select(model.id).where(model.id == record.id)
                if session.execute(exists).first() is not None:
                    raise AlreadyExistsError(f"{kind.value} {record.id} already exists") from e
                raise
            session.refresh(row)
            session.expunge(row)
            return row

    def upsert(self, kind: EntityKind, record: Any) -> SyncModel:
        """Replace a record's payload, inserting it if absent.

        The whole payload is replaced and the tombstone cleared, so an
        upsert over a deleted record brings it back.

        Args:
            kind: Entity kind.
            record: Object carrying ``id`` and the kind's payload fields.

        Returns:
            Stored record.
        """
        model = MODELS[kind]
        now = datetime.now(UTC)
        with self._session() as session:
            row = session.get(model, record.id)
            if row is None:
                row = model(id=record.id, created_at=now)
                session.add(row)

            kept_created_at = row.created_at
            _copy_payload(kind, record, row)
            if kind is EntityKind.ENTRY or row.created_at is None:
                row.created_at = kept_created_at
            row.updated_at = now
            row.deleted_at = None
            session.commit()
            session.refresh(row)
            session.expunge(row)
            return row

    def tombstone(self, kind: EntityKind, record_id: str, at: datetime) -> None:
        """Soft-delete a live record.

        Args:
            kind: Entity kind.
            record_id: Record ID.
            at: Deletion time; also becomes updated_at.

        Raises:
            NotFoundError: If the record is absent or already tombstoned.
        """
        with self._session() as session:
            row = session.get(MODELS[kind], record_id)
            if row is None or row.deleted_at is not None:
                raise NotFoundError(f"{kind.value} {record_id} not found")
            row.deleted_at = at
            row.updated_at = at
            session.commit()

    def changes_since(
        self, kind: EntityKind, user_id: str, since: datetime
    ) -> ChangeSet[Any]:
        """Get a user's records of one kind touched after a watermark.

        Entries are matched to the user through their parent habit.

        Args:
            kind: Entity kind.
            user_id: Owner of the records.
            since: Watermark.

        Returns:
            ChangeSet partitioned by classify(); deleted records by ID only.
        """
        since = as_utc(since)
        model = MODELS[kind]
        touched = or_(
            model.created_at > since,
            model.updated_at > since,
            model.deleted_at > since,
        )

        stmt = select(model)
        if kind is EntityKind.ENTRY:
            stmt = stmt.join(Habit, HabitEntry.habit_id == Habit.id)
        stmt = stmt.where(Habit.user_id == user_id, touched).order_by(model.updated_at.asc())

        changes: ChangeSet[Any] = ChangeSet()
        with self._session() as session:
            rows = list(session.execute(stmt).scalars().all())
            for row in rows:
                session.expunge(row)

        for row in rows:
            change = classify(row, since)
            if change is ChangeKind.DELETED:
                changes.deleted.append(row.id)
            elif change is ChangeKind.CREATED:
                changes.created.append(row)
            elif change is ChangeKind.UPDATED:
                changes.updated.append(row)
        return changes

    # === Token operations ===

    def create_token(
        self,
        user_id: str,
        expires_in: timedelta | None = None,
    ) -> tuple[str, Token]:
        """Create a new bearer token for a user.

        Args:
            user_id: User the token authenticates.
            expires_in: Optional expiration duration.

        Returns:
            Tuple of (raw_token, Token object).
        """
        raw_token = "hs_" + secrets.token_urlsafe(32)
        token_hash = hash_token(raw_token)
        now = datetime.now(UTC)
        expires_at = (now + expires_in) if expires_in else None

        with self._session() as session:
            token = Token(
                user_id=user_id,
                token_hash=token_hash,
                created_at=now,
                expires_at=expires_at,
            )
            session.add(token)
            session.commit()
            session.refresh(token)
            session.expunge(token)
            return raw_token, token

    def validate_token(self, raw_token: str) -> Token | None:
        """Validate a token and return it if valid.

        Args:
            raw_token: Raw token string.

        Returns:
            Token if valid, None otherwise.
        """
        token_hash = hash_token(raw_token)
        with self._session() as session:
            stmt = select(Token).where(Token.token_hash == token_hash, Token.revoked == False)  # noqa: E712
            token = session.execute(stmt).scalar_one_or_none()

            if token is None:
                return None

            if token.expires_at and as_utc(token.expires_at) < datetime.now(UTC):
                return None

            session.expunge(token)
            return token

    def revoke_token(self, token_id: int) -> None:
        """Revoke a token.

        Args:
            token_id: Token ID to revoke.
        """
        with self._session() as session:
            token = session.get(Token, token_id)
            if token:
                token.revoked = True
                session.commit()
