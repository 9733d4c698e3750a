from __future__ import annotations

from ._store import LogStore
from .types import DEFAULT_CATEGORY, DEFAULT_ICON, DailyNote, GlobalNote, Habit, LogEntry

__all__ = [
    "DEFAULT_CATEGORY",
    "DEFAULT_ICON",
    "DailyNote",
    "GlobalNote",
    "Habit",
    "LogEntry",
    "LogStore",
]
