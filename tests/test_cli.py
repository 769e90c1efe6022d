"""Tests for CLI commands - create-token, changes, apply."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from habitsync.cli import cli
from habitsync.core.types import EntityKind
from habitsync.server.database import Database
from tests.helpers import OTHER_USER, USER, make_habit


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Path for a temporary database."""
    return tmp_path / "habitsync.db"


def write_batch(tmp_path: Path, body: dict) -> Path:
    """Write a push request body to a file."""
    path = tmp_path / "batch.json"
    path.write_text(json.dumps(body), encoding="utf-8")
    return path


def habit_body(user_id: str = USER) -> dict:
    return {
        "id": "h1",
        "user_id": user_id,
        "name": "Stretch",
        "type": "BOOLEAN",
        "frequency": "DAILY",
        "updated_at": "2025-03-01T08:00:00Z",
    }


class TestCreateTokenCommand:
    """Tests for 'habitsync create-token' command."""

    def test_prints_valid_token(self, runner: CliRunner, db_path: Path) -> None:
        """Should print a token the database accepts."""
        result = runner.invoke(cli, ["create-token", USER, "--db-path", str(db_path)])

        assert result.exit_code == 0
        raw_token = result.output.strip()
        db = Database(db_path)
        try:
            token = db.validate_token(raw_token)
        finally:
            db.close()
        assert token is not None
        assert token.user_id == USER

    def test_db_path_from_environment(
        self, runner: CliRunner, db_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Should use HABITSYNC_DB_PATH when --db-path is omitted."""
        monkeypatch.setenv("HABITSYNC_DB_PATH", str(db_path))
        result = runner.invoke(cli, ["create-token", USER])
        assert result.exit_code == 0
        assert db_path.exists()


class TestChangesCommand:
    """Tests for 'habitsync changes' command."""

    def test_prints_delta_json(self, runner: CliRunner, db_path: Path) -> None:
        """Should print the user's changes as JSON."""
        db = Database(db_path)
        db.insert(EntityKind.HABIT, make_habit(name="Journal"))
        db.close()

        result = runner.invoke(cli, ["changes", USER, "--db-path", str(db_path)])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [h["name"] for h in data["habits"]["created"]] == ["Journal"]
        assert "server_time" in data

    def test_invalid_since(self, runner: CliRunner, db_path: Path) -> None:
        """Should exit with an error for a bad timestamp."""
        result = runner.invoke(
            cli, ["changes", USER, "--since", "not-a-date", "--db-path", str(db_path)]
        )
        assert result.exit_code == 1
        assert "Invalid timestamp" in result.output


class TestApplyCommand:
    """Tests for 'habitsync apply' command."""

    def test_applies_batch(self, runner: CliRunner, db_path: Path, tmp_path: Path) -> None:
        """Should apply the batch and print a summary."""
        batch = write_batch(tmp_path, {"habits": {"created": [habit_body()]}})

        result = runner.invoke(cli, ["apply", USER, str(batch), "--db-path", str(db_path)])

        assert result.exit_code == 0
        assert "Applied 1, discarded 0, skipped 0." in result.output
        db = Database(db_path)
        try:
            assert db.find_by_id(EntityKind.HABIT, "h1").name == "Stretch"
        finally:
            db.close()

    def test_foreign_habit_rejected(
        self, runner: CliRunner, db_path: Path, tmp_path: Path
    ) -> None:
        """Should exit with an error for another user's habit."""
        batch = write_batch(tmp_path, {"habits": {"created": [habit_body(OTHER_USER)]}})

        result = runner.invoke(cli, ["apply", USER, str(batch), "--db-path", str(db_path)])

        assert result.exit_code == 1

    def test_invalid_batch_file(self, runner: CliRunner, db_path: Path, tmp_path: Path) -> None:
        """Should exit with an error for malformed JSON."""
        batch = tmp_path / "batch.json"
        batch.write_text("{not json", encoding="utf-8")

        result = runner.invoke(cli, ["apply", USER, str(batch), "--db-path", str(db_path)])

        assert result.exit_code == 1
        assert "Invalid batch file" in result.output
