from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, assert_never

from .events import (
    ChangeEvent,
    DailyNoteUpdated,
    GlobalNoteUpdated,
    HabitCreated,
    HabitDeleted,
    HabitUpdated,
    LogUpdated,
)
from .store.types import Habit

DayLog = dict[str, bool]


@dataclass
class Snapshot:
    """In-memory copy of one account: habits, the sparse log, and notes.

    ``log`` maps DateKey -> habit id -> completed. A missing key means "not logged yet".
    """

    habits: list[Habit] = field(default_factory=list)
    log: dict[str, DayLog] = field(default_factory=dict)
    daily_notes: dict[str, str] = field(default_factory=dict)
    global_note: str = ""

    @property
    def habit_ids(self) -> list[str]:
        return [habit.id for habit in self.habits]

    def habit(self, habit_id: str) -> Habit | None:
        for habit in self.habits:
            if habit.id == habit_id:
                return habit
        return None

    def upsert_habit(self, habit: Habit) -> None:
        for index, existing in enumerate(self.habits):
            if existing.id == habit.id:
                self.habits[index] = habit
                return
        self.habits.append(habit)

    def remove_habit(self, habit_id: str) -> None:
        self.habits = [habit for habit in self.habits if habit.id != habit_id]
        for day in self.log.values():
            day.pop(habit_id, None)

    def set_log(self, date_key: str, habit_id: str, completed: bool) -> None:
        self.log.setdefault(date_key, {})[habit_id] = completed

    def clear_log(self, date_key: str, habit_id: str) -> None:
        day = self.log.get(date_key)
        if day is None:
            return
        day.pop(habit_id, None)
        if not day:
            del self.log[date_key]

    def set_daily_note(self, date_key: str, note: str) -> None:
        self.daily_notes[date_key] = note

    def copy(self) -> Snapshot:
        return Snapshot(
            habits=list(self.habits),
            log={key: dict(day) for key, day in self.log.items()},
            daily_notes=dict(self.daily_notes),
            global_note=self.global_note,
        )

    @classmethod
    def from_state(cls, payload: dict[str, Any]) -> Snapshot:
        """Build a snapshot from a full-state fetch response."""
        habits = [
            Habit.from_dict(item)
            for item in payload.get("habits") or []
            if isinstance(item, dict) and item.get("id")
        ]
        log: dict[str, DayLog] = {}
        raw_log = payload.get("logByDate") or {}
        if isinstance(raw_log, dict):
            for date_key, day in raw_log.items():
                if isinstance(day, dict):
                    log[str(date_key)] = {str(k): bool(v) for k, v in day.items()}
        notes_raw = payload.get("dailyNotes") or {}
        daily_notes = (
            {str(k): str(v or "") for k, v in notes_raw.items()}
            if isinstance(notes_raw, dict)
            else {}
        )
        return cls(
            habits=habits,
            log=log,
            daily_notes=daily_notes,
            global_note=str(payload.get("globalNote") or ""),
        )


def apply_event(snapshot: Snapshot, event: ChangeEvent) -> None:
    """Apply one change event in place. Last event applied wins; there is no merge."""
    if isinstance(event, (HabitCreated, HabitUpdated)):
        snapshot.upsert_habit(event.habit)
    elif isinstance(event, HabitDeleted):
        snapshot.remove_habit(event.habit_id)
    elif isinstance(event, LogUpdated):
        snapshot.set_log(event.date_key, event.habit_id, event.completed)
    elif isinstance(event, DailyNoteUpdated):
        snapshot.set_daily_note(event.date_key, event.note)
    elif isinstance(event, GlobalNoteUpdated):
        snapshot.global_note = event.content
    else:
        assert_never(event)
