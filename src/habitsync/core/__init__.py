"""Core module - Shared types, errors and configuration."""

from habitsync.core.config import ServerConfig, ServerSettings
from habitsync.core.errors import (
    AlreadyExistsError,
    InvalidInputError,
    NotFoundError,
    SyncError,
    UnauthorizedError,
)
from habitsync.core.types import ChangeKind, EntityKind, as_utc, parse_timestamp, utcnow

__all__ = [
    # Config
    "ServerConfig",
    "ServerSettings",
    # Errors
    "AlreadyExistsError",
    "InvalidInputError",
    "NotFoundError",
    "SyncError",
    "UnauthorizedError",
    # Types
    "ChangeKind",
    "EntityKind",
    "as_utc",
    "parse_timestamp",
    "utcnow",
]
