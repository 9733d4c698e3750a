from pathlib import Path

from typer.testing import CliRunner

from habitsync.cli import app
from habitsync.client import HabitApiClient
from habitsync.gateway import DEFAULT_HABITS, PERFECT_DAY_NOTE

runner = CliRunner()


def test_init_db_creates_database(tmp_path: Path) -> None:
    db_path = tmp_path / "fresh.sqlite"

    result = runner.invoke(app, ["init-db", "--db-path", str(db_path)])

    assert result.exit_code == 0
    assert db_path.exists()


def test_habit_log_and_stats_against_server(live_server: str) -> None:
    result = runner.invoke(app, ["habit", "add", "water", "2L water", "--url", live_server])
    assert result.exit_code == 0, result.stdout
    result = runner.invoke(
        app, ["log", "water", "--date", "2026-03-10", "--url", live_server]
    )
    assert result.exit_code == 0, result.stdout

    result = runner.invoke(app, ["stats", "--date", "2026-03-10", "--url", live_server])

    assert result.exit_code == 0, result.stdout
    assert "Milestones" in result.stdout
    assert HabitApiClient(live_server).get_logs("2026-03-10", "2026-03-10") == [
        {"dateKey": "2026-03-10", "habitId": "water", "completed": True}
    ]


def test_duplicate_habit_exits_with_error(live_server: str) -> None:
    runner.invoke(app, ["habit", "add", "water", "Water", "--url", live_server])

    result = runner.invoke(app, ["habit", "add", "water", "Water", "--url", live_server])

    assert result.exit_code == 1
    assert "Conflict" in result.stdout


def test_seed_and_perfect(live_server: str) -> None:
    result = runner.invoke(app, ["habit", "seed", "--url", live_server])
    assert result.exit_code == 0
    assert f"Seeded {len(DEFAULT_HABITS)} habits" in result.stdout

    result = runner.invoke(app, ["perfect", "--date", "2026-03-10", "--url", live_server])

    assert result.exit_code == 0
    assert f"({len(DEFAULT_HABITS)} habits)" in result.stdout
    client = HabitApiClient(live_server)
    assert len(client.get_logs("2026-03-10", "2026-03-10")) == len(DEFAULT_HABITS)
    assert client.get_daily_note("2026-03-10") == PERFECT_DAY_NOTE


def test_invalid_date_is_rejected(live_server: str) -> None:
    result = runner.invoke(app, ["log", "water", "--date", "tomorrow", "--url", live_server])

    assert result.exit_code == 1
    assert "Invalid date" in result.stdout
