"""Sync API routes: delta pull and batch push for offline clients."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError

from habitsync.core.errors import InvalidInputError, UnauthorizedError
from habitsync.core.types import parse_timestamp
from habitsync.server.api.deps import (
    get_current_user,
    get_delta_service,
    get_reconciler,
    get_watermark_margin,
)
from habitsync.server.schemas import (
    SyncBatchRequest,
    SyncBatchResponse,
    SyncChangesResponse,
    changes_to_response,
    request_to_batch,
)
from habitsync.sync.delta import DeltaQueryService, next_watermark
from habitsync.sync.reconciler import BatchReconciler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.get("/changes", response_model=SyncChangesResponse)
def get_changes(
    since: str = Query(
        ...,
        description="ISO 8601 timestamp. Get changes after this time.",
        examples=["2025-01-01T00:00:00Z"],
    ),
    service: DeltaQueryService = Depends(get_delta_service),
    margin: float = Depends(get_watermark_margin),
    user_id: str = Depends(get_current_user),
) -> SyncChangesResponse:
    """Get habit and entry changes since a watermark.

    Clients should:
    1. On first sync, use a very old timestamp (e.g., 1970-01-01T00:00:00Z)
    2. Store server_time from the response
    3. On subsequent syncs, use the stored value as 'since'

    server_time trails the server clock by a safety margin, so the next
    pull may repeat a few records already received.
    """
    try:
        since_dt = parse_timestamp(since)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid since timestamp: {since}",
        ) from e

    # Taken before the query and backed off past any write still in flight
    server_time = next_watermark(margin)

    try:
        changes = service.get_changes(user_id, since_dt)
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except SQLAlchemyError as e:
        logger.exception("Failed to query changes for user %s", user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="internal server error",
        ) from e

    return changes_to_response(changes, server_time)


@router.post("/batch", response_model=SyncBatchResponse)
def apply_batch(
    request: SyncBatchRequest,
    reconciler: BatchReconciler = Depends(get_reconciler),
    user_id: str = Depends(get_current_user),
) -> SyncBatchResponse:
    """Apply a batch of offline changes using Last-Write-Wins.

    Records are applied in order and the batch stops at the first error;
    records applied before it stay applied. Clients should re-pull after
    a failure and resubmit, which is safe.
    """
    try:
        reconciler.apply_batch(user_id, request_to_batch(request))
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except UnauthorizedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e)) from e
    except SQLAlchemyError as e:
        logger.exception("Failed to apply sync batch for user %s", user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="internal server error",
        ) from e

    return SyncBatchResponse(message="applied")
