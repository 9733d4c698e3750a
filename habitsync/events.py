"""Change events: one typed record per applied mutation.

Each event carries enough data for a remote session to apply the same mutation to its
snapshot without re-querying. On the wire an event is ``{"type": <kind>, "data": {...}}``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, ClassVar

from .store.types import Habit


@dataclass(frozen=True)
class HabitCreated:
    type: ClassVar[str] = "habit_created"
    habit: Habit

    def data(self) -> dict[str, Any]:
        return self.habit.to_dict()


@dataclass(frozen=True)
class HabitUpdated:
    type: ClassVar[str] = "habit_updated"
    habit: Habit

    def data(self) -> dict[str, Any]:
        return self.habit.to_dict()


@dataclass(frozen=True)
class HabitDeleted:
    type: ClassVar[str] = "habit_deleted"
    habit_id: str

    def data(self) -> dict[str, Any]:
        return {"id": self.habit_id}


@dataclass(frozen=True)
class LogUpdated:
    type: ClassVar[str] = "log_updated"
    date_key: str
    habit_id: str
    completed: bool

    def data(self) -> dict[str, Any]:
        return {"dateKey": self.date_key, "habitId": self.habit_id, "completed": self.completed}


@dataclass(frozen=True)
class DailyNoteUpdated:
    type: ClassVar[str] = "daily_note_updated"
    date_key: str
    note: str

    def data(self) -> dict[str, Any]:
        return {"dateKey": self.date_key, "note": self.note}


@dataclass(frozen=True)
class GlobalNoteUpdated:
    type: ClassVar[str] = "global_note_updated"
    content: str

    def data(self) -> dict[str, Any]:
        return {"content": self.content}


ChangeEvent = (
    HabitCreated | HabitUpdated | HabitDeleted | LogUpdated | DailyNoteUpdated | GlobalNoteUpdated
)

EVENT_TYPES: tuple[str, ...] = (
    HabitCreated.type,
    HabitUpdated.type,
    HabitDeleted.type,
    LogUpdated.type,
    DailyNoteUpdated.type,
    GlobalNoteUpdated.type,
)


def to_wire(event: ChangeEvent) -> dict[str, Any]:
    return {"type": event.type, "data": event.data()}


def encode(event: ChangeEvent) -> str:
    return json.dumps(to_wire(event), ensure_ascii=False, separators=(",", ":"))


def _require_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise ValueError(f"event field {key!r} must be a string")
    return value


def from_wire(payload: Any) -> ChangeEvent:
    if not isinstance(payload, dict):
        raise ValueError("event must be an object")
    kind = payload.get("type")
    data = payload.get("data")
    if not isinstance(data, dict):
        raise ValueError("event data must be an object")
    if kind == HabitCreated.type:
        _require_str(data, "id")
        return HabitCreated(habit=Habit.from_dict(data))
    if kind == HabitUpdated.type:
        _require_str(data, "id")
        return HabitUpdated(habit=Habit.from_dict(data))
    if kind == HabitDeleted.type:
        return HabitDeleted(habit_id=_require_str(data, "id"))
    if kind == LogUpdated.type:
        return LogUpdated(
            date_key=_require_str(data, "dateKey"),
            habit_id=_require_str(data, "habitId"),
            completed=bool(data.get("completed")),
        )
    if kind == DailyNoteUpdated.type:
        return DailyNoteUpdated(
            date_key=_require_str(data, "dateKey"), note=str(data.get("note") or "")
        )
    if kind == GlobalNoteUpdated.type:
        return GlobalNoteUpdated(content=str(data.get("content") or ""))
    raise ValueError(f"unknown event type: {kind!r}")


def decode(raw: str) -> ChangeEvent:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("event is not valid json") from exc
    return from_wire(payload)
