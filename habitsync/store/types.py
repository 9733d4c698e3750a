from __future__ import annotations

from dataclasses import dataclass
from typing import Any

DEFAULT_ICON = "•"
DEFAULT_CATEGORY = "General"


@dataclass(frozen=True)
class Habit:
    id: str
    name: str
    icon: str = DEFAULT_ICON
    category: str = DEFAULT_CATEGORY
    created_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "category": self.category,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Habit:
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            icon=str(data.get("icon") or DEFAULT_ICON),
            category=str(data.get("category") or DEFAULT_CATEGORY),
            created_at=str(data.get("createdAt") or data.get("created_at") or ""),
        )


@dataclass(frozen=True)
class LogEntry:
    date_key: str
    habit_id: str
    completed: bool

    def to_dict(self) -> dict[str, Any]:
        return {"dateKey": self.date_key, "habitId": self.habit_id, "completed": self.completed}


@dataclass(frozen=True)
class DailyNote:
    date_key: str
    note: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return {"dateKey": self.date_key, "note": self.note, "updatedAt": self.updated_at}


@dataclass(frozen=True)
class GlobalNote:
    content: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return {"content": self.content, "updatedAt": self.updated_at}
