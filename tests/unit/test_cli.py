import asyncio

import pytest
from typer.testing import CliRunner

from journeyflow.cli import app
from journeyflow.contracts import JourneyState
from journeyflow.persistence import SQLiteJourneyStore

runner = CliRunner()


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    path = tmp_path / "journeys.db"
    monkeypatch.delenv("JOURNEYFLOW_CONFIG", raising=False)
    monkeypatch.delenv("JOURNEYFLOW_TELEMETRY", raising=False)
    monkeypatch.setenv("JOURNEYFLOW_DATABASE_URL", f"sqlite://{path}")
    monkeypatch.chdir(tmp_path)
    return path


def _save(db_path, state: JourneyState) -> None:
    store = SQLiteJourneyStore(db_path)
    asyncio.run(store.save_snapshot(state.session_id, state.to_snapshot()))
    store.close()


def test_catalog_lists_steps():
    result = runner.invoke(app, ["catalog"])
    assert result.exit_code == 0, result.stdout
    lines = result.stdout.strip().splitlines()
    assert len(lines) == 24
    assert lines[0].startswith("auth-login\tauth")


def test_catalog_filters_by_phase():
    result = runner.invoke(app, ["catalog", "--phase", "video"])
    assert result.exit_code == 0, result.stdout
    assert "video-review" in result.stdout
    assert "skippable" in result.stdout
    assert "auth-login" not in result.stdout


def test_session_list(db_path):
    result = runner.invoke(app, ["session", "list"])
    assert result.exit_code == 0, result.stdout
    assert "No sessions found" in result.stdout

    _save(db_path, JourneyState(current_step="scenario-input", session_id="abc123"))
    result = runner.invoke(app, ["session", "list"])
    assert result.exit_code == 0, result.stdout
    assert "abc123\tscenario-input" in result.stdout


def test_session_show(db_path):
    state = JourneyState(
        current_step="auth-verification",
        session_id="abc123",
        completed_steps=["auth-login", "auth-verification"],
    )
    state.persisted_data["auth"].update(user_id="u1", access_token="t")
    _save(db_path, state)

    result = runner.invoke(app, ["session", "show", "abc123"])
    assert result.exit_code == 0, result.stdout
    assert "Session abc123: auth-verification" in result.stdout
    assert "- auth: 100%" in result.stdout
    assert "Next step: scenario-input" in result.stdout

    missing = runner.invoke(app, ["session", "show", "nope"])
    assert missing.exit_code == 1
    assert "Session not found" in missing.stdout


def test_session_validate(db_path):
    _save(db_path, JourneyState(current_step="auth-login", session_id="abc123"))

    blocked = runner.invoke(app, ["session", "validate", "abc123", "scenario-input"])
    assert blocked.exit_code == 1
    assert "blocked" in blocked.stdout
    assert "Missing: auth.user_id" in blocked.stdout

    unknown = runner.invoke(app, ["session", "validate", "abc123", "no-such-step"])
    assert unknown.exit_code == 2
