"""HTTP client for the habitsync sync API.

This module provides:
- SyncClient: pulls deltas and pushes batches on behalf of an offline client
- Exceptions mirroring the server's status mapping
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx

from habitsync.core.config import ServerConfig
from habitsync.server.schemas import (
    EntryChanges,
    HabitChanges,
    SyncBatchRequest,
    SyncChangesResponse,
)
from habitsync.sync.changes import ChangeSet, SyncChanges

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BadRequestError(APIError):
    """Request was malformed (bad timestamp, empty user)."""


class AuthenticationError(APIError):
    """Authentication failed."""


class ForbiddenError(APIError):
    """A record in the batch belongs to another user."""


@dataclass
class PullResult:
    """Result of a pull.

    Attributes:
        changes: Delta with HabitPayload/EntryPayload records.
        server_time: Watermark to use for the next pull.
    """

    changes: SyncChanges
    server_time: datetime


def _detail(response: httpx.Response, default: str) -> str:
    try:
        data: dict[str, Any] = response.json()
    except ValueError:
        return default
    return str(data.get("detail", default))


class SyncClient:
    """HTTP client for the habitsync sync API."""

    def __init__(self, config: ServerConfig, client: httpx.Client | None = None) -> None:
        """Initialize the sync client.

        Args:
            config: Server URL, token and timeout.
            client: Optional pre-built httpx client (e.g. a test client);
                a new one is created from config otherwise.
        """
        self._config = config
        self._headers = {"Authorization": f"Bearer {config.token}"}
        self._owns_client = client is None
        self._client = client or httpx.Client(
            base_url=config.server_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
        )

    def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> SyncClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code == 400:
            raise BadRequestError(_detail(response, "Bad request"), 400)
        if response.status_code == 401:
            raise AuthenticationError("Invalid or expired token", 401)
        if response.status_code == 403:
            raise ForbiddenError(_detail(response, "Forbidden"), 403)
        if response.status_code >= 400:
            raise APIError(_detail(response, "Unknown error"), response.status_code)
        return response

    def health_check(self) -> bool:
        """Check if the server is healthy.

        Returns:
            True if server is healthy.
        """
        try:
            response = self._client.get("/health")
            return response.status_code == 200
        except httpx.RequestError:
            return False

    def pull(self, since: datetime) -> PullResult:
        """Get every change since a watermark.

        Args:
            since: Watermark; pass the previous PullResult.server_time.

        Returns:
            PullResult with the delta and the next watermark.
        """
        response = self._handle_response(
            self._client.get(
                "/api/sync/changes",
                params={"since": since.isoformat()},
                headers=self._headers,
            )
        )
        data = SyncChangesResponse.model_validate(response.json())
        changes = SyncChanges(
            habits=ChangeSet(
                created=list(data.habits.created),
                updated=list(data.habits.updated),
                deleted=list(data.habits.deleted),
            ),
            entries=ChangeSet(
                created=list(data.entries.created),
                updated=list(data.entries.updated),
                deleted=list(data.entries.deleted),
            ),
        )
        logger.debug(
            "Pulled %d habit and %d entry change(s)",
            len(changes.habits),
            len(changes.entries),
        )
        return PullResult(changes=changes, server_time=data.server_time)

    def push(self, batch: SyncChanges) -> None:
        """Push a batch of local changes.

        Records in the batch must be HabitPayload/EntryPayload instances.
        On error, part of the batch may already be applied; re-pull and
        resubmit.

        Args:
            batch: Local creations, updates and deletions.
        """
        request = SyncBatchRequest(
            habits=HabitChanges(
                created=batch.habits.created,
                updated=batch.habits.updated,
                deleted=batch.habits.deleted,
            ),
            entries=EntryChanges(
                created=batch.entries.created,
                updated=batch.entries.updated,
                deleted=batch.entries.deleted,
            ),
        )
        self._handle_response(
            self._client.post(
                "/api/sync/batch",
                json=request.model_dump(mode="json"),
                headers=self._headers,
            )
        )
