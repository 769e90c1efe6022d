"""Command-line interface for habitsync.

Commands:
- serve: Run the sync server with uvicorn
- create-token: Issue a bearer token for a user
- changes: Print a user's delta since a watermark as JSON
- apply: Apply a batch JSON file on behalf of a user
"""

from __future__ import annotations

import os
import sys
from datetime import timedelta
from pathlib import Path

import click

from habitsync.core.errors import InvalidInputError, UnauthorizedError
from habitsync.core.types import parse_timestamp

DB_PATH_HELP = "Path to database file (default: HABITSYNC_DB_PATH or ./habitsync.db)."


def _resolve_db_path(db_path: str | None) -> Path:
    return Path(db_path or os.environ.get("HABITSYNC_DB_PATH", "habitsync.db"))


@click.group()
@click.version_option(package_name="habitsync")
def cli() -> None:
    """habitsync - Offline delta sync for habits and entries."""


@cli.command()
@click.option("--host", default=None, help="Interface to bind (default: HABITSYNC_HOST or 127.0.0.1).")
@click.option("--port", type=int, default=None, help="Port (default: HABITSYNC_PORT or 8000).")
def serve(host: str | None, port: int | None) -> None:
    """Run the sync server."""
    import uvicorn

    from habitsync.core.config import ServerSettings

    settings = ServerSettings.from_env()
    uvicorn.run(
        "habitsync.server.app:app_factory",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
    )


@cli.command("create-token")
@click.argument("user_id")
@click.option(
    "--expires-days",
    type=int,
    default=None,
    help="Token lifetime in days (default: never expires).",
)
@click.option("--db-path", type=click.Path(), default=None, help=DB_PATH_HELP)
def create_token(user_id: str, expires_days: int | None, db_path: str | None) -> None:
    """Issue a bearer token for USER_ID.

    Stands in for the external identity provider during development.
    """
    from habitsync.server.database import Database

    db = Database(_resolve_db_path(db_path))
    try:
        expires_in = timedelta(days=expires_days) if expires_days else None
        raw_token, _ = db.create_token(user_id, expires_in=expires_in)
    finally:
        db.close()
    click.echo(raw_token)


@cli.command()
@click.argument("user_id")
@click.option(
    "--since",
    default="1970-01-01T00:00:00Z",
    show_default=True,
    help="ISO 8601 watermark.",
)
@click.option("--db-path", type=click.Path(), default=None, help=DB_PATH_HELP)
def changes(user_id: str, since: str, db_path: str | None) -> None:
    """Print USER_ID's changes since a watermark as JSON."""
    from habitsync.server.database import Database
    from habitsync.server.schemas import changes_to_response
    from habitsync.core.config import ServerSettings
    from habitsync.sync.delta import DeltaQueryService, next_watermark

    try:
        since_dt = parse_timestamp(since)
    except ValueError:
        click.echo(f"Error: Invalid timestamp: {since}", err=True)
        sys.exit(1)

    db = Database(_resolve_db_path(db_path))
    try:
        server_time = next_watermark(ServerSettings.from_env().watermark_margin)
        delta = DeltaQueryService(db).get_changes(user_id, since_dt)
    except InvalidInputError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        db.close()

    click.echo(changes_to_response(delta, server_time).model_dump_json(indent=2))


@cli.command()
@click.argument("user_id")
@click.argument("batch_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--db-path", type=click.Path(), default=None, help=DB_PATH_HELP)
def apply(user_id: str, batch_file: str, db_path: str | None) -> None:
    """Apply BATCH_FILE (push request JSON) on behalf of USER_ID."""
    from pydantic import ValidationError

    from habitsync.server.database import Database
    from habitsync.server.schemas import SyncBatchRequest, request_to_batch
    from habitsync.sync.reconciler import BatchReconciler

    try:
        request = SyncBatchRequest.model_validate_json(Path(batch_file).read_text(encoding="utf-8"))
    except ValidationError as e:
        click.echo(f"Error: Invalid batch file: {e}", err=True)
        sys.exit(1)

    db = Database(_resolve_db_path(db_path))
    try:
        report = BatchReconciler(db).apply_batch(user_id, request_to_batch(request))
    except (InvalidInputError, UnauthorizedError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        db.close()

    click.echo(
        f"Applied {report.applied}, discarded {report.discarded}, skipped {report.skipped}."
    )


if __name__ == "__main__":
    cli()
