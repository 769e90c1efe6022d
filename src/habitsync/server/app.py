"""FastAPI application for the habitsync server.

This module creates and configures the FastAPI application with:
- GET /api/sync/changes for delta pulls
- POST /api/sync/batch for batch pushes
- GET /health

Usage:
    uvicorn habitsync.server.app:app_factory --factory --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from habitsync import __version__
from habitsync.core.config import DEFAULT_WATERMARK_MARGIN, ServerSettings
from habitsync.server.api.router import router as api_router
from habitsync.server.database import Database

logger = logging.getLogger(__name__)


def setup_logging(log_path: Path, level: int = logging.INFO) -> None:
    """Configure logging to output to both file and stdout.

    Args:
        log_path: Path to the log file.
        level: Level for the habitsync logger.
    """
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = logging.Formatter(log_format)

    # Root logger for habitsync
    root_logger = logging.getLogger("habitsync")
    root_logger.setLevel(level)

    # Stdout handler
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    # File handler
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # Also capture uvicorn logs to file
    for uvicorn_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(uvicorn_name)
        uvicorn_logger.addHandler(file_handler)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed requests (missing since, bad batch body) as 400."""
    logger.debug("Rejected request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


def create_app(db: Database, watermark_margin: float = DEFAULT_WATERMARK_MARGIN) -> FastAPI:
    """Create FastAPI application with a given database.

    Tests pass an isolated database; app_factory() builds one from the
    environment.

    Args:
        db: Database instance acting as the change ledger.
        watermark_margin: Seconds the advertised pull watermark trails
            the server clock.

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        logger.info("=" * 60)
        logger.info("habitsync server starting")
        logger.info("=" * 60)
        logger.info("  Database: %s", db.path)
        logger.info("  Watermark margin: %ss", watermark_margin)
        logger.info("=" * 60)

        yield

        logger.info("habitsync server shutting down")
        db.close()

    application = FastAPI(
        title="habitsync",
        description="Offline delta synchronization for habits and entries",
        version=__version__,
        lifespan=lifespan,
    )

    application.state.db = db
    application.state.watermark_margin = watermark_margin
    application.add_exception_handler(RequestValidationError, request_validation_handler)
    application.include_router(api_router)

    return application


def app_factory() -> FastAPI:
    """Factory function for uvicorn --factory mode."""
    settings = ServerSettings.from_env()
    setup_logging(settings.log_path)
    return create_app(
        db=Database(settings.db_path),
        watermark_margin=settings.watermark_margin,
    )
