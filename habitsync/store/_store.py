from __future__ import annotations

import contextlib
import datetime as dt
import logging
import sqlite3
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from .. import db
from ..errors import Conflict, NotFound, StoreUnavailable
from .types import DEFAULT_CATEGORY, DEFAULT_ICON, DailyNote, GlobalNote, Habit, LogEntry

logger = logging.getLogger(__name__)


class LogStore:
    """Durable habit log: habits, per-day completions, daily notes and the global note.

    Every public method is one logical write or read. ``sqlite3`` failures other than
    constraint violations surface as ``StoreUnavailable``.
    """

    def __init__(
        self,
        db_path: Path | str = db.DEFAULT_DB_PATH,
        *,
        check_same_thread: bool = True,
    ):
        self.db_path = Path(db_path).expanduser()
        try:
            self.conn = db.connect(self.db_path, check_same_thread=check_same_thread)
            db.initialize_schema(self.conn)
        except (sqlite3.Error, OSError) as exc:
            raise StoreUnavailable(f"cannot open store at {self.db_path}: {exc}") from exc

    def close(self) -> None:
        self.conn.close()

    def _now_iso(self) -> str:
        return dt.datetime.now(dt.UTC).isoformat()

    @contextlib.contextmanager
    def _guard(self) -> Iterator[None]:
        try:
            yield
        except sqlite3.IntegrityError:
            self.conn.rollback()
            raise
        except sqlite3.Error as exc:
            with contextlib.suppress(sqlite3.Error):
                self.conn.rollback()
            logger.error("store operation failed: %s", exc)
            raise StoreUnavailable(str(exc)) from exc

    @staticmethod
    def _habit_from_row(row: sqlite3.Row) -> Habit:
        return Habit(
            id=str(row["id"]),
            name=str(row["name"]),
            icon=str(row["icon"]),
            category=str(row["category"]),
            created_at=str(row["created_at"]),
        )

    # Habits

    def list_habits(self) -> list[Habit]:
        with self._guard():
            rows = self.conn.execute(
                "SELECT id, name, icon, category, created_at FROM habits ORDER BY created_at, rowid"
            ).fetchall()
        return [self._habit_from_row(row) for row in rows]

    def get_habit(self, habit_id: str) -> Habit | None:
        with self._guard():
            row = self.conn.execute(
                "SELECT id, name, icon, category, created_at FROM habits WHERE id = ?",
                (habit_id,),
            ).fetchone()
        return self._habit_from_row(row) if row else None

    def create_habit(
        self,
        habit_id: str,
        name: str,
        icon: str | None = None,
        category: str | None = None,
    ) -> Habit:
        now = self._now_iso()
        try:
            with self._guard():
                self.conn.execute(
                    """
                    INSERT INTO habits(id, name, icon, category, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (habit_id, name, icon or DEFAULT_ICON, category or DEFAULT_CATEGORY, now, now),
                )
                self.conn.commit()
        except sqlite3.IntegrityError as exc:
            raise Conflict(f"habit {habit_id!r} already exists") from exc
        return Habit(
            id=habit_id,
            name=name,
            icon=icon or DEFAULT_ICON,
            category=category or DEFAULT_CATEGORY,
            created_at=now,
        )

    def update_habit(self, habit_id: str, name: str, icon: str, category: str) -> Habit:
        with self._guard():
            cur = self.conn.execute(
                """
                UPDATE habits
                SET name = ?, icon = ?, category = ?, updated_at = ?
                WHERE id = ?
                """,
                (name, icon, category, self._now_iso(), habit_id),
            )
            self.conn.commit()
        if cur.rowcount == 0:
            raise NotFound(f"habit {habit_id!r} not found")
        habit = self.get_habit(habit_id)
        if habit is None:
            raise NotFound(f"habit {habit_id!r} not found")
        return habit

    def delete_habit(self, habit_id: str) -> None:
        """Remove a habit and every log entry that references it, in one transaction."""
        with self._guard():
            self.conn.execute("DELETE FROM habit_logs WHERE habit_id = ?", (habit_id,))
            cur = self.conn.execute("DELETE FROM habits WHERE id = ?", (habit_id,))
            if cur.rowcount == 0:
                self.conn.rollback()
                raise NotFound(f"habit {habit_id!r} not found")
            self.conn.commit()

    # Log entries

    def get_log_range(self, start_key: str, end_key: str) -> list[LogEntry]:
        with self._guard():
            rows = self.conn.execute(
                """
                SELECT date_key, habit_id, completed
                FROM habit_logs
                WHERE date_key >= ? AND date_key <= ?
                ORDER BY date_key, id
                """,
                (start_key, end_key),
            ).fetchall()
        return [
            LogEntry(
                date_key=str(row["date_key"]),
                habit_id=str(row["habit_id"]),
                completed=bool(row["completed"]),
            )
            for row in rows
        ]

    def get_log_by_date(self, date_key: str) -> list[dict[str, Any]]:
        with self._guard():
            rows = self.conn.execute(
                """
                SELECT hl.habit_id, hl.completed, h.name, h.icon, h.category
                FROM habit_logs hl
                JOIN habits h ON hl.habit_id = h.id
                WHERE hl.date_key = ?
                ORDER BY h.created_at, h.rowid
                """,
                (date_key,),
            ).fetchall()
        return [
            {
                "habitId": str(row["habit_id"]),
                "completed": bool(row["completed"]),
                "name": str(row["name"]),
                "icon": str(row["icon"]),
                "category": str(row["category"]),
            }
            for row in rows
        ]

    def upsert_log(self, date_key: str, habit_id: str, completed: bool) -> LogEntry:
        try:
            with self._guard():
                self.conn.execute(
                    """
                    INSERT INTO habit_logs(date_key, habit_id, completed, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(date_key, habit_id) DO UPDATE SET
                        completed = excluded.completed,
                        updated_at = excluded.updated_at
                    """,
                    (date_key, habit_id, 1 if completed else 0, self._now_iso()),
                )
                self.conn.commit()
        except sqlite3.IntegrityError as exc:
            # Only the habit foreign key can fail here.
            raise NotFound(f"habit {habit_id!r} not found") from exc
        return LogEntry(date_key=date_key, habit_id=habit_id, completed=bool(completed))

    # Notes

    def get_daily_note(self, date_key: str) -> DailyNote | None:
        with self._guard():
            row = self.conn.execute(
                "SELECT date_key, note, updated_at FROM daily_notes WHERE date_key = ?",
                (date_key,),
            ).fetchone()
        if row is None:
            return None
        return DailyNote(
            date_key=str(row["date_key"]), note=str(row["note"]), updated_at=str(row["updated_at"])
        )

    def list_daily_notes(self, start_key: str, end_key: str) -> list[DailyNote]:
        with self._guard():
            rows = self.conn.execute(
                """
                SELECT date_key, note, updated_at
                FROM daily_notes
                WHERE date_key >= ? AND date_key <= ?
                ORDER BY date_key
                """,
                (start_key, end_key),
            ).fetchall()
        return [
            DailyNote(
                date_key=str(row["date_key"]),
                note=str(row["note"]),
                updated_at=str(row["updated_at"]),
            )
            for row in rows
        ]

    def upsert_daily_note(self, date_key: str, note: str) -> DailyNote:
        now = self._now_iso()
        with self._guard():
            self.conn.execute(
                """
                INSERT INTO daily_notes(date_key, note, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(date_key) DO UPDATE SET
                    note = excluded.note,
                    updated_at = excluded.updated_at
                """,
                (date_key, note, now),
            )
            self.conn.commit()
        return DailyNote(date_key=date_key, note=note, updated_at=now)

    def get_global_note(self) -> GlobalNote | None:
        with self._guard():
            row = self.conn.execute(
                "SELECT content, updated_at FROM global_note WHERE id = 1"
            ).fetchone()
        if row is None:
            return None
        return GlobalNote(content=str(row["content"]), updated_at=str(row["updated_at"]))

    def upsert_global_note(self, content: str) -> GlobalNote:
        now = self._now_iso()
        with self._guard():
            self.conn.execute(
                """
                INSERT INTO global_note(id, content, updated_at)
                VALUES (1, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    content = excluded.content,
                    updated_at = excluded.updated_at
                """,
                (content, now),
            )
            self.conn.commit()
        return GlobalNote(content=content, updated_at=now)
