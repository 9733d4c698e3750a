from __future__ import annotations

from rich import print

from ..client import HabitApiClient
from .common import call_or_exit, habit_line


def list_habits_cmd(client: HabitApiClient) -> None:
    """Show every habit in creation order."""

    habits = call_or_exit(client.list_habits)
    if not habits:
        print("No habits yet")
        return
    for habit in habits:
        print(f"- {habit_line(habit)}")


def add_habit_cmd(
    client: HabitApiClient,
    *,
    habit_id: str,
    name: str,
    icon: str | None,
    category: str | None,
) -> None:
    habit = call_or_exit(lambda: client.create_habit(habit_id, name, icon, category))
    print(f"[green]Created[/green] {habit_line(habit)}")


def edit_habit_cmd(
    client: HabitApiClient,
    *,
    habit_id: str,
    name: str,
    icon: str | None,
    category: str | None,
) -> None:
    habit = call_or_exit(lambda: client.update_habit(habit_id, name, icon, category))
    print(f"[green]Updated[/green] {habit_line(habit)}")


def remove_habit_cmd(client: HabitApiClient, *, habit_id: str) -> None:
    call_or_exit(lambda: client.delete_habit(habit_id))
    print(f"[yellow]Deleted[/yellow] {habit_id} and its log entries")


def seed_habits_cmd(client: HabitApiClient) -> None:
    """Create the starter habits that do not exist yet."""

    created = call_or_exit(client.seed_habits)
    for habit in created:
        print(f"[green]Created[/green] {habit_line(habit)}")
    print(f"Seeded {len(created)} habits")
