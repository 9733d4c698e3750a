import sqlite3
from pathlib import Path

import pytest

from habitsync import db
from habitsync.errors import Conflict, NotFound, StoreUnavailable
from habitsync.store import DailyNote, Habit, LogEntry, LogStore


@pytest.fixture
def store(tmp_path: Path):
    store = LogStore(tmp_path / "habits.sqlite")
    yield store
    store.close()


def test_create_and_list_habits_in_creation_order(store: LogStore) -> None:
    store.create_habit("water", "2L water", "💧", "Health")
    store.create_habit("read", "Read")

    habits = store.list_habits()

    assert [habit.id for habit in habits] == ["water", "read"]
    assert habits[1].icon == "•"
    assert habits[1].category == "General"
    assert habits[0].created_at
    assert store.get_habit("read") == habits[1]
    assert store.get_habit("missing") is None


def test_create_duplicate_habit_conflicts(store: LogStore) -> None:
    store.create_habit("water", "Water")
    with pytest.raises(Conflict):
        store.create_habit("water", "Other")
    assert [habit.name for habit in store.list_habits()] == ["Water"]


def test_update_habit(store: LogStore) -> None:
    created = store.create_habit("water", "Water")

    updated = store.update_habit("water", "3L water", "💧", "Health")

    assert updated == Habit(
        id="water", name="3L water", icon="💧", category="Health", created_at=created.created_at
    )
    with pytest.raises(NotFound):
        store.update_habit("missing", "x", "•", "General")


def test_delete_habit_cascades_to_log_entries(store: LogStore) -> None:
    store.create_habit("a", "A")
    store.create_habit("b", "B")
    store.upsert_log("2026-03-09", "a", True)
    store.upsert_log("2026-03-09", "b", True)
    store.upsert_log("2026-03-10", "a", False)

    store.delete_habit("a")

    assert [habit.id for habit in store.list_habits()] == ["b"]
    assert store.get_log_range("2026-03-01", "2026-03-31") == [
        LogEntry(date_key="2026-03-09", habit_id="b", completed=True)
    ]
    with pytest.raises(NotFound):
        store.delete_habit("a")


def test_upsert_log_last_write_wins(store: LogStore) -> None:
    store.create_habit("a", "A")

    store.upsert_log("2026-03-10", "a", True)
    store.upsert_log("2026-03-10", "a", False)

    assert store.get_log_range("2026-03-10", "2026-03-10") == [
        LogEntry(date_key="2026-03-10", habit_id="a", completed=False)
    ]


def test_upsert_log_for_unknown_habit_is_not_found(store: LogStore) -> None:
    with pytest.raises(NotFound):
        store.upsert_log("2026-03-10", "ghost", True)
    assert store.get_log_range("2026-01-01", "2026-12-31") == []


def test_log_range_is_inclusive_and_sparse(store: LogStore) -> None:
    store.create_habit("a", "A")
    for date_key in ["2026-02-28", "2026-03-01", "2026-03-05", "2026-03-06"]:
        store.upsert_log(date_key, "a", True)

    entries = store.get_log_range("2026-03-01", "2026-03-05")

    assert [entry.date_key for entry in entries] == ["2026-03-01", "2026-03-05"]


def test_get_log_by_date_joins_habit_details(store: LogStore) -> None:
    store.create_habit("water", "2L water", "💧", "Health")
    store.upsert_log("2026-03-10", "water", True)

    assert store.get_log_by_date("2026-03-10") == [
        {
            "habitId": "water",
            "completed": True,
            "name": "2L water",
            "icon": "💧",
            "category": "Health",
        }
    ]
    assert store.get_log_by_date("2026-03-11") == []


def test_daily_notes(store: LogStore) -> None:
    assert store.get_daily_note("2026-03-10") is None

    store.upsert_daily_note("2026-03-10", "first")
    saved = store.upsert_daily_note("2026-03-10", "second")
    store.upsert_daily_note("2026-04-01", "april")

    assert store.get_daily_note("2026-03-10") == saved
    assert saved.note == "second"
    assert [note.date_key for note in store.list_daily_notes("2026-03-01", "2026-03-31")] == [
        "2026-03-10"
    ]
    assert isinstance(saved, DailyNote)


def test_global_note_round_trip_including_empty(store: LogStore) -> None:
    assert store.get_global_note() is None

    store.upsert_global_note("goals for the year")
    assert store.get_global_note().content == "goals for the year"

    store.upsert_global_note("")
    note = store.get_global_note()
    assert note is not None
    assert note.content == ""
    count = store.conn.execute("SELECT COUNT(*) FROM global_note").fetchone()[0]
    assert count == 1


def test_store_survives_reopen(tmp_path: Path) -> None:
    path = tmp_path / "habits.sqlite"
    first = LogStore(path)
    first.create_habit("a", "A")
    first.upsert_log("2026-03-10", "a", True)
    first.close()

    second = LogStore(path)
    try:
        assert [habit.id for habit in second.list_habits()] == ["a"]
        assert len(second.get_log_range("2026-03-10", "2026-03-10")) == 1
    finally:
        second.close()


def test_unopenable_store_is_unavailable(tmp_path: Path) -> None:
    with pytest.raises(StoreUnavailable):
        LogStore(tmp_path)


def test_schema_has_unique_log_key(tmp_path: Path) -> None:
    conn = db.connect(tmp_path / "raw.sqlite")
    try:
        db.initialize_schema(conn)
        db.initialize_schema(conn)
        conn.execute(
            "INSERT INTO habits(id, name, created_at, updated_at) VALUES ('a', 'A', 't', 't')"
        )
        conn.execute(
            "INSERT INTO habit_logs(date_key, habit_id, completed, updated_at)"
            " VALUES ('2026-03-10', 'a', 1, 't')"
        )
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(
                "INSERT INTO habit_logs(date_key, habit_id, completed, updated_at)"
                " VALUES ('2026-03-10', 'a', 0, 't')"
            )
    finally:
        conn.close()
