from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import typer
from rich import print

from .. import dates
from ..errors import HabitSyncError

T = TypeVar("T")


def call_or_exit(call: Callable[[], T]) -> T:
    try:
        return call()
    except HabitSyncError as exc:
        print(f"[red]{type(exc).__name__}: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def resolve_day(date_key: str | None, timezone: str) -> str:
    if date_key is None:
        return dates.today_key(timezone)
    if not dates.is_date_key(date_key):
        print(f"[red]Invalid date {date_key!r}; expected YYYY-MM-DD[/red]")
        raise typer.Exit(code=1)
    return date_key


def progress_bar(percent: int, width: int = 20) -> str:
    filled = round(width * max(0, min(100, percent)) / 100)
    return "█" * filled + "░" * (width - filled)


def habit_line(habit: dict[str, Any]) -> str:
    icon = habit.get("icon") or "•"
    return (
        f"{icon} {habit.get('name')} "
        f"[dim]({habit.get('id')}, {habit.get('category') or 'General'})[/dim]"
    )
