"""Client module - HTTP client for the sync API."""

from habitsync.client.api import (
    APIError,
    AuthenticationError,
    BadRequestError,
    ForbiddenError,
    PullResult,
    SyncClient,
)

__all__ = [
    "APIError",
    "AuthenticationError",
    "BadRequestError",
    "ForbiddenError",
    "PullResult",
    "SyncClient",
]
