"""Aggregation engine: progress, averages, streaks and milestones over a snapshot.

Everything here is a pure function of a ``Snapshot`` plus a reference "today" DateKey.
Missing log entries score as ``False`` (materialize-on-read) but are never written back.
Only currently defined habits count: entries left behind by deleted habits are ignored.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from . import dates
from .snapshot import DayLog, Snapshot


@dataclass(frozen=True)
class DailyProgress:
    completed: int
    total: int
    percent: int
    perfect: bool


@dataclass(frozen=True)
class Milestone:
    label: str
    threshold_days: int
    reward_text: str


MILESTONES: tuple[Milestone, ...] = (
    Milestone("First Streak", 5, "Amazing start! Keep building momentum."),
    Milestone("Consistency Master", 15, "15 days of consistency – keep it rolling."),
    Milestone("Habit Warrior", 30, "30 perfect days logged. You're on fire."),
    Milestone("Discipline Champion", 50, "50-day streak says you're unshakable."),
    Milestone("Transformation Complete", 75, "75 days of excellence. Nearly there."),
    Milestone("Century Club", 100, "100 perfect days! A new standard set."),
)

UNLOCKED = "unlocked"
IN_PROGRESS = "inProgress"
LOCKED = "locked"


@dataclass(frozen=True)
class MilestoneStatus:
    milestone: Milestone
    status: str
    progress: int


@dataclass(frozen=True)
class WeekRollup:
    label: str
    start_key: str
    end_key: str
    average: int


@dataclass(frozen=True)
class DashboardSummary:
    today: str
    today_progress: DailyProgress
    week: list[tuple[str, DailyProgress]]
    week_average: int
    month_average: int
    current_streak: int
    longest_streak: int
    milestones: list[MilestoneStatus]
    week_rollup: list[WeekRollup]
    year_grid: list[int]


def round_half_up(numerator: int, denominator: int) -> int:
    """``round(numerator / denominator)`` with halves rounded up, for non-negative input."""
    if denominator <= 0:
        return 0
    return (2 * numerator + denominator) // (2 * denominator)


def ensure_day(snapshot: Snapshot, date_key: str) -> DayLog:
    """Return the day's entries with every current habit present (``False`` when unlogged).

    The snapshot itself is not modified, so repeated calls return equal content.
    """
    recorded = snapshot.log.get(date_key, {})
    day = dict(recorded)
    for habit_id in snapshot.habit_ids:
        if habit_id not in day:
            day[habit_id] = False
    return day


def daily_progress(snapshot: Snapshot, date_key: str) -> DailyProgress:
    total = len(snapshot.habits)
    if total == 0:
        return DailyProgress(completed=0, total=0, percent=0, perfect=False)
    day = ensure_day(snapshot, date_key)
    completed = sum(1 for habit_id in snapshot.habit_ids if day.get(habit_id) is True)
    return DailyProgress(
        completed=completed,
        total=total,
        percent=round_half_up(100 * completed, total),
        perfect=completed == total,
    )


def window_average(snapshot: Snapshot, date_keys: Sequence[str]) -> int:
    if not date_keys:
        return 0
    scores = [daily_progress(snapshot, key).percent for key in date_keys]
    return round_half_up(sum(scores), len(scores))


def daily_status_label(progress: DailyProgress) -> str:
    if progress.perfect:
        return "Perfect day"
    if progress.percent >= 70:
        return "On track"
    return "Keep going"


def current_perfect_streak(snapshot: Snapshot, today: str) -> int:
    """Consecutive perfect days ending today, counted within today's calendar month.

    Days after ``today`` are skipped. A non-perfect ``today`` is treated as still pending
    and does not break the run; any other non-perfect day ends the scan.
    """
    streak = 0
    for key in reversed(dates.month_keys(dates.parse_key(today))):
        if key > today:
            continue
        if daily_progress(snapshot, key).perfect:
            streak += 1
        elif key == today:
            continue
        else:
            break
    return streak


def longest_perfect_streak(snapshot: Snapshot, today: str) -> int:
    """Longest run of perfect days across every day of today's calendar month."""
    longest = 0
    current = 0
    for key in dates.month_keys(dates.parse_key(today)):
        if daily_progress(snapshot, key).perfect:
            current += 1
            longest = max(longest, current)
        else:
            current = 0
    return longest


def milestone_status(
    milestone: Milestone, current_streak: int, longest_streak: int
) -> MilestoneStatus:
    if current_streak >= milestone.threshold_days:
        status = UNLOCKED
    elif longest_streak >= milestone.threshold_days / 2:
        status = IN_PROGRESS
    else:
        status = LOCKED
    progress = min(100, round_half_up(100 * current_streak, milestone.threshold_days))
    return MilestoneStatus(milestone=milestone, status=status, progress=progress)


def milestone_statuses(
    current_streak: int,
    longest_streak: int,
    milestones: Iterable[Milestone] = MILESTONES,
) -> list[MilestoneStatus]:
    return [milestone_status(m, current_streak, longest_streak) for m in milestones]


def week_average(snapshot: Snapshot, today: str) -> int:
    return window_average(snapshot, dates.week_keys(dates.parse_key(today)))


def month_average(snapshot: Snapshot, today: str) -> int:
    return window_average(snapshot, dates.month_keys(dates.parse_key(today)))


def year_grid(snapshot: Snapshot, today: str) -> list[int]:
    """Window average for each month (January first) of today's year."""
    year = dates.parse_key(today).year
    return [window_average(snapshot, dates.month_keys_for(year, month)) for month in range(1, 13)]


def week_rollup(snapshot: Snapshot, today: str) -> list[WeekRollup]:
    """Today's month cut into consecutive 7-day chunks starting on the 1st."""
    chunks = dates.chunk_keys(dates.month_keys(dates.parse_key(today)), 7)
    return [
        WeekRollup(
            label=f"Week {index + 1}",
            start_key=chunk[0],
            end_key=chunk[-1],
            average=window_average(snapshot, chunk),
        )
        for index, chunk in enumerate(chunks)
    ]


def summarize(snapshot: Snapshot, today: str) -> DashboardSummary:
    current = current_perfect_streak(snapshot, today)
    longest = longest_perfect_streak(snapshot, today)
    week_keys = dates.week_keys(dates.parse_key(today))
    return DashboardSummary(
        today=today,
        today_progress=daily_progress(snapshot, today),
        week=[(key, daily_progress(snapshot, key)) for key in week_keys],
        week_average=window_average(snapshot, week_keys),
        month_average=month_average(snapshot, today),
        current_streak=current,
        longest_streak=longest,
        milestones=milestone_statuses(current, longest),
        week_rollup=week_rollup(snapshot, today),
        year_grid=year_grid(snapshot, today),
    )
