from __future__ import annotations

from rich import print

from ..client import HabitApiClient
from .common import call_or_exit, resolve_day


def set_log_cmd(
    client: HabitApiClient,
    *,
    habit_id: str,
    completed: bool,
    date_key: str | None,
    timezone: str,
) -> None:
    day = resolve_day(date_key, timezone)
    call_or_exit(lambda: client.set_log(day, habit_id, completed))
    mark = "[green]done[/green]" if completed else "[yellow]not done[/yellow]"
    print(f"{day} {habit_id}: {mark}")


def mark_perfect_cmd(client: HabitApiClient, *, date_key: str | None, timezone: str) -> None:
    """Complete every habit for one day (today by default)."""

    day = resolve_day(date_key, timezone)
    entries = call_or_exit(lambda: client.mark_day_perfect(day))
    print(f"[green]{day} marked perfect ({len(entries)} habits)[/green]")


def daily_note_cmd(
    client: HabitApiClient,
    *,
    note: str | None,
    date_key: str | None,
    timezone: str,
) -> None:
    day = resolve_day(date_key, timezone)
    if note is None:
        print(call_or_exit(lambda: client.get_daily_note(day)) or "[dim](empty)[/dim]")
        return
    call_or_exit(lambda: client.set_daily_note(day, note))
    print(f"Saved note for {day}")


def global_note_cmd(client: HabitApiClient, *, content: str | None) -> None:
    if content is None:
        print(call_or_exit(client.get_global_note) or "[dim](empty)[/dim]")
        return
    call_or_exit(lambda: client.set_global_note(content))
    print("Saved global note")
