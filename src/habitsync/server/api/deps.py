"""FastAPI dependencies for API routes."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from habitsync.server.database import Database
from habitsync.sync.delta import DeltaQueryService
from habitsync.sync.reconciler import BatchReconciler

# Security scheme
security = HTTPBearer(auto_error=False)


def get_db(request: Request) -> Database:
    """Get database from app state."""
    db: Database = request.app.state.db
    return db


def get_watermark_margin(request: Request) -> float:
    """Seconds the advertised pull watermark trails the server clock."""
    margin: float = request.app.state.watermark_margin
    return margin


def get_delta_service(db: Database = Depends(get_db)) -> DeltaQueryService:
    """Delta Query Service backed by the app database."""
    return DeltaQueryService(db)


def get_reconciler(db: Database = Depends(get_db)) -> BatchReconciler:
    """Batch Reconciler backed by the app database."""
    return BatchReconciler(db)


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    """Validate bearer token and return the authenticated user ID."""
    db = get_db(request)
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    token = db.validate_token(credentials.credentials)
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token.user_id
