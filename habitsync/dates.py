"""DateKey helpers.

A DateKey is a ``YYYY-MM-DD`` string in one reference timezone. Lexicographic order of
keys is chronological order, so range reads and comparisons work on the strings directly.
The window generators below are pure calendar math and never touch storage.
"""

from __future__ import annotations

import calendar
import datetime as dt
import re
from zoneinfo import ZoneInfo

DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def reference_tz(name: str = "UTC") -> dt.tzinfo:
    if not name or name.upper() == "UTC":
        return dt.UTC
    return ZoneInfo(name)


def format_key(day: dt.date) -> str:
    return day.strftime("%Y-%m-%d")


def parse_key(key: str) -> dt.date:
    if not isinstance(key, str) or not DATE_KEY_RE.match(key):
        raise ValueError(f"invalid date key: {key!r}")
    return dt.date.fromisoformat(key)


def is_date_key(value: object) -> bool:
    if not isinstance(value, str):
        return False
    try:
        parse_key(value)
    except ValueError:
        return False
    return True


def today_in(tz_name: str = "UTC", *, now: dt.datetime | None = None) -> dt.date:
    tz = reference_tz(tz_name)
    current = now or dt.datetime.now(dt.UTC)
    if current.tzinfo is None:
        current = current.replace(tzinfo=dt.UTC)
    return current.astimezone(tz).date()


def today_key(tz_name: str = "UTC", *, now: dt.datetime | None = None) -> str:
    return format_key(today_in(tz_name, now=now))


def keys_between(start: dt.date, end: dt.date) -> list[str]:
    """Inclusive range of keys from ``start`` to ``end``; empty when ``end < start``."""
    span = (end - start).days
    return [format_key(start + dt.timedelta(days=offset)) for offset in range(span + 1)]


def week_keys(today: dt.date) -> list[str]:
    monday = today - dt.timedelta(days=today.weekday())
    return keys_between(monday, monday + dt.timedelta(days=6))


def month_keys_for(year: int, month: int) -> list[str]:
    last_day = calendar.monthrange(year, month)[1]
    return keys_between(dt.date(year, month, 1), dt.date(year, month, last_day))


def month_keys(today: dt.date) -> list[str]:
    return month_keys_for(today.year, today.month)


def last_n_days(today: dt.date, days: int) -> list[str]:
    if days <= 0:
        return []
    return keys_between(today - dt.timedelta(days=days - 1), today)


def chunk_keys(keys: list[str], size: int = 7) -> list[list[str]]:
    return [keys[i : i + size] for i in range(0, len(keys), size)]
