"""Configuration classes for habitsync.

Server settings are read from environment variables; the client side
uses ServerConfig to describe the server it talks to.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

# Writes stamp updated_at before they commit; pulls back off by this much
DEFAULT_WATERMARK_MARGIN = 5.0


@dataclass
class ServerSettings:
    """Settings for running the habitsync server.

    Attributes:
        db_path: Path to the SQLite database file.
        log_path: Path to the server log file.
        host: Interface to bind.
        port: Port to listen on.
        watermark_margin: Seconds subtracted from the server clock when
            advertising the next pull watermark.
    """

    db_path: Path = Path("habitsync.db")
    log_path: Path = Path("habitsync-server.log")
    host: str = "127.0.0.1"
    port: int = 8000
    watermark_margin: float = DEFAULT_WATERMARK_MARGIN

    @classmethod
    def from_env(cls) -> ServerSettings:
        """Build settings from HABITSYNC_* environment variables."""
        return cls(
            db_path=Path(os.environ.get("HABITSYNC_DB_PATH", "habitsync.db")),
            log_path=Path(os.environ.get("HABITSYNC_LOG_PATH", "habitsync-server.log")),
            host=os.environ.get("HABITSYNC_HOST", "127.0.0.1"),
            port=int(os.environ.get("HABITSYNC_PORT", "8000")),
            watermark_margin=float(
                os.environ.get("HABITSYNC_WATERMARK_MARGIN", DEFAULT_WATERMARK_MARGIN)
            ),
        )


@dataclass
class ServerConfig:
    """Configuration for connecting to a habitsync server.

    Attributes:
        server_url: Base URL of the server (e.g., "https://habits.example.com").
        token: Bearer token identifying the user.
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    server_url: str
    token: str
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize server URL."""
        self.server_url = self.server_url.rstrip("/")

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS."""
        return self.server_url.startswith("https://")
