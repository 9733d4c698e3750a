"""Mutation gateway: validate, write once to the log store, then emit one change event.

A failed call emits nothing and re-raises the store error unchanged. Mutations run one at
a time under a shared lock so the order events are published in matches the order the
store accepted the writes.
"""

from __future__ import annotations

import datetime as dt
import logging
import threading
from collections.abc import Callable
from typing import Any

from . import dates
from .aggregation import ensure_day
from .errors import Conflict, NotFound, ValidationError
from .events import (
    ChangeEvent,
    DailyNoteUpdated,
    GlobalNoteUpdated,
    HabitCreated,
    HabitDeleted,
    HabitUpdated,
    LogUpdated,
)
from .snapshot import Snapshot
from .store import DailyNote, GlobalNote, Habit, LogEntry, LogStore

logger = logging.getLogger(__name__)

PERFECT_DAY_NOTE = "Marked as perfect day."
DEFAULT_STATE_WINDOW_DAYS = 365

Publisher = Callable[[ChangeEvent], object]

DEFAULT_HABITS: tuple[dict[str, str], ...] = (
    {"id": "water", "name": "2L water", "icon": "💧", "category": "Health"},
    {"id": "sleep", "name": "7h sleep", "icon": "💤", "category": "Health"},
    {"id": "deepWork", "name": "4h deep work", "icon": "💻", "category": "Productivity"},
    {"id": "journaling", "name": "Journaling", "icon": "✍️", "category": "Mindset"},
    {"id": "reading", "name": "20 min read", "icon": "📚", "category": "Growth"},
    {"id": "steps", "name": "10k steps", "icon": "🚶‍♀️", "category": "Health"},
    {"id": "gym", "name": "Strength training", "icon": "🏋️", "category": "Fitness"},
    {"id": "meditation", "name": "Meditation", "icon": "🧘‍♂️", "category": "Mindset"},
    {"id": "nutrition", "name": "Nourishing meals", "icon": "🥗", "category": "Health"},
    {"id": "social", "name": "Intentional reach-out", "icon": "🤝", "category": "Relationships"},
)


def _require_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    return value.strip()


def _optional_text(value: Any, field: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value.strip() or None


def _require_date_key(value: Any) -> str:
    if not dates.is_date_key(value):
        raise ValidationError("dateKey must be YYYY-MM-DD")
    return str(value)


def _note_text(value: Any, field: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value


class MutationGateway:
    def __init__(
        self,
        store: LogStore,
        publish: Publisher,
        *,
        lock: threading.Lock | None = None,
    ) -> None:
        self.store = store
        self._publish = publish
        self._lock = lock or threading.Lock()

    def _emit(self, event: ChangeEvent) -> None:
        self._publish(event)
        logger.debug("emitted %s", event.type)

    # Habits

    def create_habit(
        self,
        habit_id: Any,
        name: Any,
        icon: Any = None,
        category: Any = None,
    ) -> Habit:
        habit_id = _require_text(habit_id, "id")
        name = _require_text(name, "name")
        icon = _optional_text(icon, "icon")
        category = _optional_text(category, "category")
        with self._lock:
            if self.store.get_habit(habit_id) is not None:
                raise Conflict(f"habit {habit_id!r} already exists")
            habit = self.store.create_habit(habit_id, name, icon, category)
            self._emit(HabitCreated(habit=habit))
        logger.info("created habit %s", habit.id)
        return habit

    def update_habit(
        self,
        habit_id: Any,
        name: Any,
        icon: Any = None,
        category: Any = None,
    ) -> Habit:
        habit_id = _require_text(habit_id, "id")
        name = _require_text(name, "name")
        icon = _optional_text(icon, "icon")
        category = _optional_text(category, "category")
        with self._lock:
            existing = self.store.get_habit(habit_id)
            if existing is None:
                raise NotFound(f"habit {habit_id!r} not found")
            habit = self.store.update_habit(
                habit_id,
                name,
                icon or existing.icon,
                category or existing.category,
            )
            self._emit(HabitUpdated(habit=habit))
        return habit

    def delete_habit(self, habit_id: Any) -> str:
        habit_id = _require_text(habit_id, "id")
        with self._lock:
            self.store.delete_habit(habit_id)
            self._emit(HabitDeleted(habit_id=habit_id))
        logger.info("deleted habit %s and its log entries", habit_id)
        return habit_id

    # Log and notes

    def set_log(self, date_key: Any, habit_id: Any, completed: Any) -> LogEntry:
        date_key = _require_date_key(date_key)
        habit_id = _require_text(habit_id, "habitId")
        if not isinstance(completed, bool):
            raise ValidationError("completed must be a boolean")
        with self._lock:
            if self.store.get_habit(habit_id) is None:
                raise NotFound(f"habit {habit_id!r} not found")
            entry = self.store.upsert_log(date_key, habit_id, completed)
            self._emit(
                LogUpdated(date_key=entry.date_key, habit_id=entry.habit_id, completed=entry.completed)
            )
        return entry

    def set_daily_note(self, date_key: Any, note: Any) -> DailyNote:
        date_key = _require_date_key(date_key)
        text = _note_text(note, "note")
        with self._lock:
            saved = self.store.upsert_daily_note(date_key, text)
            self._emit(DailyNoteUpdated(date_key=saved.date_key, note=saved.note))
        return saved

    def set_global_note(self, content: Any) -> GlobalNote:
        text = _note_text(content, "content")
        with self._lock:
            saved = self.store.upsert_global_note(text)
            self._emit(GlobalNoteUpdated(content=saved.content))
        return saved

    def mark_day_perfect(self, date_key: Any) -> list[LogEntry]:
        """Set every current habit complete for one day; one event per habit.

        When the day has no note yet it also gets ``PERFECT_DAY_NOTE``.
        """
        date_key = _require_date_key(date_key)
        entries = [
            self.set_log(date_key, habit.id, True) for habit in self.store.list_habits()
        ]
        existing = self.store.get_daily_note(date_key)
        if existing is None or not existing.note:
            self.set_daily_note(date_key, PERFECT_DAY_NOTE)
        return entries

    def seed_default_habits(self) -> list[Habit]:
        created: list[Habit] = []
        for item in DEFAULT_HABITS:
            if self.store.get_habit(item["id"]) is not None:
                continue
            created.append(
                self.create_habit(item["id"], item["name"], item["icon"], item["category"])
            )
        return created

    # Reads

    def full_state(
        self,
        today: dt.date,
        *,
        window_days: int = DEFAULT_STATE_WINDOW_DAYS,
    ) -> dict[str, Any]:
        """Everything a session needs to (re)build its snapshot.

        Logged days inside the window are materialized against the current habit set.
        """
        keys = dates.last_n_days(today, window_days)
        start_key, end_key = (keys[0], keys[-1]) if keys else (dates.format_key(today),) * 2
        habits = self.store.list_habits()
        snapshot = Snapshot(habits=habits)
        for entry in self.store.get_log_range(start_key, end_key):
            snapshot.set_log(entry.date_key, entry.habit_id, entry.completed)
        log_by_date = {key: ensure_day(snapshot, key) for key in sorted(snapshot.log)}
        notes = {
            note.date_key: note.note for note in self.store.list_daily_notes(start_key, end_key)
        }
        global_note = self.store.get_global_note()
        logger.debug("state requested: %s habits, %s logged days", len(habits), len(log_by_date))
        return {
            "habits": [habit.to_dict() for habit in habits],
            "logByDate": log_by_date,
            "dailyNotes": notes,
            "globalNote": global_note.content if global_note else "",
            "lastSaved": dt.datetime.now(dt.UTC).isoformat(),
        }
