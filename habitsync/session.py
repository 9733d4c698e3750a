"""Client-side session: a snapshot kept eventually consistent through the push channel.

Lifecycle is ``init`` (full fetch) -> ``live`` (events applied) -> ``closed``. While the
channel is down the session keeps serving its last snapshot and mutations still go
through the request/response path. Reconnects back off exponentially up to a fixed
number of attempts, then the session reports ``offline`` until ``reconnect()``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from typing import Any, Protocol

from . import dates
from .aggregation import DashboardSummary, summarize
from .autosave import GLOBAL_NOTE_KEY, NoteAutosaver
from .config import HabitSyncConfig
from .errors import ChannelDisconnected, HabitSyncError
from .events import ChangeEvent, HabitCreated, HabitDeleted, HabitUpdated
from .gateway import PERFECT_DAY_NOTE
from .snapshot import Snapshot, apply_event
from .store.types import Habit

logger = logging.getLogger(__name__)

INIT = "init"
LIVE = "live"
CLOSED = "closed"

CONNECTING = "connecting"
CONNECTED = "connected"
DISCONNECTED = "disconnected"
OFFLINE = "offline"

SYNCED = "synced"
SYNC_ERROR = "sync error"


class ApiClient(Protocol):
    def get_state(self) -> dict[str, Any]: ...
    def create_habit(
        self, habit_id: str, name: str, icon: str | None = None, category: str | None = None
    ) -> dict[str, Any]: ...
    def update_habit(
        self, habit_id: str, name: str, icon: str | None = None, category: str | None = None
    ) -> dict[str, Any]: ...
    def delete_habit(self, habit_id: str) -> dict[str, Any]: ...
    def set_log(self, date_key: str, habit_id: str, completed: bool) -> dict[str, Any]: ...
    def set_daily_note(self, date_key: str, note: str) -> dict[str, Any]: ...
    def set_global_note(self, content: str) -> dict[str, Any]: ...
    def iter_events(
        self,
        *,
        on_open: Callable[[], None] | None = None,
        stop: threading.Event | None = None,
    ) -> Iterator[ChangeEvent]: ...


def backoff_delay(attempt: int, base_delay_s: float) -> float:
    """Delay before reconnect ``attempt`` (1-based): base, 2*base, 4*base, ..."""
    return base_delay_s * (2 ** max(0, attempt - 1))


class Session:
    def __init__(
        self,
        client: ApiClient,
        *,
        timezone: str = "UTC",
        max_attempts: int = 5,
        base_delay_s: float = 2.0,
        note_debounce_ms: int = 500,
        on_change: Callable[[Session], None] | None = None,
        today: Callable[[], str] | None = None,
    ) -> None:
        self.client = client
        self.timezone = timezone
        self.max_attempts = max_attempts
        self.base_delay_s = base_delay_s
        self.on_change = on_change
        self._today = today or (lambda: dates.today_key(self.timezone))
        self._lock = threading.RLock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.snapshot = Snapshot()
        self.state = INIT
        self.channel_status = DISCONNECTED
        self.sync_status = SYNCED
        self.attempts = 0
        self.last_error: str | None = None
        self.notes = NoteAutosaver(self._save_note, debounce_ms=note_debounce_ms)

    @classmethod
    def from_config(cls, client: ApiClient, config: HabitSyncConfig, **kwargs: Any) -> Session:
        return cls(
            client,
            timezone=config.timezone,
            max_attempts=config.reconnect_max_attempts,
            base_delay_s=config.reconnect_base_delay_s,
            note_debounce_ms=config.note_debounce_ms,
            **kwargs,
        )

    # Snapshot

    def _changed(self) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change(self)
        except Exception:
            logger.exception("session change callback failed")

    def resync(self) -> bool:
        """Replace the snapshot with a full-state fetch.

        A failed first load leaves an empty snapshot; a failed later resync keeps the
        last known one.
        """
        try:
            payload = self.client.get_state()
        except HabitSyncError as exc:
            self.last_error = str(exc)
            logger.warning("full-state fetch failed: %s", exc)
            with self._lock:
                if self.state == INIT:
                    self.snapshot = Snapshot()
                    self.state = LIVE
            self._changed()
            return False
        with self._lock:
            self.snapshot = Snapshot.from_state(payload)
            if self.state != CLOSED:
                self.state = LIVE
        logger.info(
            "resynced %s habits, %s logged days", len(self.snapshot.habits), len(self.snapshot.log)
        )
        self._changed()
        return True

    def apply(self, event: ChangeEvent) -> None:
        with self._lock:
            apply_event(self.snapshot, event)
        self._changed()

    def view(self) -> Snapshot:
        with self._lock:
            return self.snapshot.copy()

    def summary(self) -> DashboardSummary:
        return summarize(self.view(), self._today())

    # Channel lifecycle

    def start(self) -> None:
        self.resync()
        self._start_channel()

    def _start_channel(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run_channel, daemon=True)
        self._thread.start()

    def reconnect(self) -> None:
        """User-triggered reconnect after the attempt cap was reached."""
        self.attempts = 0
        self._start_channel()

    def _on_open(self) -> None:
        self.attempts = 0
        self.channel_status = CONNECTED
        logger.info("push channel connected")
        # Events published before this connection are never replayed.
        self.resync()

    def _run_channel(self) -> None:
        while not self._stop.is_set():
            self.channel_status = CONNECTING
            try:
                for event in self.client.iter_events(on_open=self._on_open, stop=self._stop):
                    self.apply(event)
            except ChannelDisconnected as exc:
                self.last_error = str(exc)
                logger.warning("push channel disconnected: %s", exc)
            except Exception:
                logger.exception("push channel loop failed")
            if self._stop.is_set():
                break
            self.channel_status = DISCONNECTED
            self._changed()
            if self.attempts >= self.max_attempts:
                self.channel_status = OFFLINE
                logger.warning("max reconnection attempts reached (%s)", self.max_attempts)
                self._changed()
                return
            self.attempts += 1
            delay = backoff_delay(self.attempts, self.base_delay_s)
            logger.info(
                "reconnecting push channel (%s/%s) in %.1fs",
                self.attempts,
                self.max_attempts,
                delay,
            )
            if self._stop.wait(delay):
                break

    def close(self) -> list[str]:
        """Flush pending note edits and tear the session down.

        Returns the note keys that could not be saved.
        """
        failed = self.notes.flush_all()
        self.notes.cancel()
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=5)
        with self._lock:
            self.state = CLOSED
        self.channel_status = DISCONNECTED
        return failed

    # Mutations

    def _mutate(self, call: Callable[[], Any], revert: Callable[[], None] | None = None) -> Any:
        try:
            result = call()
        except HabitSyncError as exc:
            self.sync_status = SYNC_ERROR
            self.last_error = str(exc)
            if revert is not None:
                with self._lock:
                    revert()
                self._changed()
            raise
        self.sync_status = SYNCED
        return result

    def toggle(self, date_key: str, habit_id: str, completed: bool) -> None:
        """Optimistically set one log entry; reverted if the server rejects it."""
        with self._lock:
            day = self.snapshot.log.get(date_key, {})
            had_value = habit_id in day
            previous = day.get(habit_id, False)
            self.snapshot.set_log(date_key, habit_id, completed)
        self._changed()

        def revert() -> None:
            current = self.snapshot.log.get(date_key, {})
            if habit_id not in current or current[habit_id] != completed:
                # A remote update replaced the optimistic value; keep it.
                return
            if had_value:
                self.snapshot.set_log(date_key, habit_id, previous)
            else:
                self.snapshot.clear_log(date_key, habit_id)

        self._mutate(lambda: self.client.set_log(date_key, habit_id, completed), revert)

    def mark_today_perfect(self) -> None:
        today = self._today()
        for habit in self.view().habits:
            self.toggle(today, habit.id, True)
        if not self.view().daily_notes.get(today):
            self.edit_daily_note(today, PERFECT_DAY_NOTE)
            self.notes.flush(today)

    def create_habit(
        self,
        habit_id: str,
        name: str,
        icon: str | None = None,
        category: str | None = None,
    ) -> Habit:
        payload = self._mutate(lambda: self.client.create_habit(habit_id, name, icon, category))
        habit = Habit.from_dict(payload)
        self.apply(HabitCreated(habit=habit))
        return habit

    def update_habit(
        self,
        habit_id: str,
        name: str,
        icon: str | None = None,
        category: str | None = None,
    ) -> Habit:
        payload = self._mutate(lambda: self.client.update_habit(habit_id, name, icon, category))
        habit = Habit.from_dict(payload)
        self.apply(HabitUpdated(habit=habit))
        return habit

    def delete_habit(self, habit_id: str) -> None:
        self._mutate(lambda: self.client.delete_habit(habit_id))
        self.apply(HabitDeleted(habit_id=habit_id))

    def edit_daily_note(self, date_key: str, note: str) -> None:
        with self._lock:
            self.snapshot.set_daily_note(date_key, note)
        self._changed()
        self.notes.note_edit(date_key, note)

    def edit_global_note(self, content: str) -> None:
        with self._lock:
            self.snapshot.global_note = content
        self._changed()
        self.notes.note_edit(GLOBAL_NOTE_KEY, content)

    def _save_note(self, key: str, text: str) -> None:
        if key == GLOBAL_NOTE_KEY:
            self._mutate(lambda: self.client.set_global_note(text))
        else:
            self._mutate(lambda: self.client.set_daily_note(key, text))
