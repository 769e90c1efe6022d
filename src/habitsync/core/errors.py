"""Error taxonomy for the sync core."""

from __future__ import annotations


class SyncError(Exception):
    """Base class for sync errors."""


class InvalidInputError(SyncError):
    """A required field is missing or malformed."""


class UnauthorizedError(SyncError):
    """A record's owner does not match the authenticated user."""


class NotFoundError(SyncError):
    """Record not found (used as a control-flow signal inside the core)."""


class AlreadyExistsError(SyncError):
    """A record with the same ID already exists."""
