from __future__ import annotations

import calendar
import threading

from rich import print

from .. import dates
from ..aggregation import DashboardSummary, daily_status_label, summarize
from ..client import HabitApiClient
from ..config import HabitSyncConfig
from ..session import Session
from ..snapshot import Snapshot
from .common import call_or_exit, progress_bar, resolve_day


def render_summary(summary: DashboardSummary) -> None:
    today = summary.today_progress
    print(f"[bold]{summary.today}[/bold] {today.completed}/{today.total} habits · {today.percent}%")
    print(f"  {progress_bar(today.percent)} {daily_status_label(today)}")
    print(
        f"Week {summary.week_average}% · Month {summary.month_average}% · "
        f"Streak {summary.current_streak} days (best this month {summary.longest_streak})"
    )
    print("[bold]This week[/bold]")
    for key, progress in summary.week:
        label = dates.parse_key(key).strftime("%a %b %d")
        print(f"  {label}  {progress_bar(progress.percent, 14)} {progress.percent:>3}%")
    print("[bold]Month rollup[/bold]")
    for week in summary.week_rollup:
        print(f"  {week.label} ({week.start_key} – {week.end_key}) {week.average}%")
    print("[bold]Year[/bold]")
    for index, percent in enumerate(summary.year_grid, start=1):
        print(f"  {calendar.month_name[index]:<10} {progress_bar(percent, 14)} {percent:>3}%")
    print("[bold]Milestones[/bold]")
    for item in summary.milestones:
        color = {"unlocked": "green", "inProgress": "yellow"}.get(item.status, "dim")
        print(
            f"  [{color}]{item.milestone.label:<24} {item.status:<10}[/{color}] "
            f"{summary.current_streak}/{item.milestone.threshold_days} "
            f"{progress_bar(item.progress, 10)}"
        )


def stats_cmd(client: HabitApiClient, *, config: HabitSyncConfig, date_key: str | None) -> None:
    """Print progress, streaks and milestones computed from the server state."""

    snapshot = Snapshot.from_state(call_or_exit(client.get_state))
    today = resolve_day(date_key, config.timezone)
    render_summary(summarize(snapshot, today))


def watch_cmd(client: HabitApiClient, *, config: HabitSyncConfig) -> None:
    """Keep a live session open and re-render on every change."""

    last_status: dict[str, str] = {}

    def on_change(session: Session) -> None:
        if session.channel_status != last_status.get("channel"):
            last_status["channel"] = session.channel_status
            print(f"[dim]channel: {session.channel_status}[/dim]")
        render_summary(session.summary())

    session = Session.from_config(client, config, on_change=on_change)
    session.start()
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        failed = session.close()
        if failed:
            print(f"[red]Unsaved notes: {', '.join(failed)}[/red]")
