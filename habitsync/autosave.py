from __future__ import annotations

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 500

GLOBAL_NOTE_KEY = "__global__"


class NoteAutosaver:
    """Coalesce note edits per key and save only the last one after a quiet interval.

    ``save(key, text)`` is called at most once per quiet interval per key, and never
    concurrently for the same key. An edit that lands while a save is in flight is saved
    once that save returns. ``flush_all`` waits for in-flight saves, pushes every pending
    edit immediately and must run before the owner goes away. A failed save keeps the text
    pending unless a newer edit replaced it.
    """

    def __init__(
        self,
        save: Callable[[str, str], object],
        *,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
    ) -> None:
        self._save = save
        self.debounce_ms = debounce_ms
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._timers: dict[str, threading.Timer] = {}
        self._pending: dict[str, str] = {}
        self._flushing: set[str] = set()

    def note_edit(self, key: str, text: str) -> None:
        if not key:
            return
        with self._lock:
            self._pending[key] = text
            if self.debounce_ms > 0:
                self._arm(key)
            else:
                existing = self._timers.pop(key, None)
                if existing:
                    existing.cancel()
        if self.debounce_ms <= 0:
            self.flush(key)

    def _arm(self, key: str) -> None:
        # Caller holds self._lock.
        existing = self._timers.pop(key, None)
        if existing:
            existing.cancel()
        delay = max(self.debounce_ms, 0) / 1000.0
        timer = threading.Timer(delay, self.flush, args=(key,))
        timer.daemon = True
        self._timers[key] = timer
        timer.start()

    def pending(self) -> dict[str, str]:
        with self._lock:
            return dict(self._pending)

    def flush(self, key: str, *, wait: bool = False) -> bool:
        """Save the pending text for ``key`` now; returns False only when the save failed.

        If a save of the same key is already running, ``wait=False`` leaves the newer text
        to that save, which re-arms itself when it returns. ``wait=True`` blocks until it
        finishes and then saves here.
        """
        with self._idle:
            while key in self._flushing:
                if not wait:
                    return True
                self._idle.wait()
            timer = self._timers.pop(key, None)
            if key not in self._pending:
                return True
            text = self._pending.pop(key)
            self._flushing.add(key)
        if timer:
            timer.cancel()
        ok = True
        try:
            self._save(key, text)
        except Exception:
            logger.exception("note autosave failed for %s", key)
            ok = False
        finally:
            with self._idle:
                self._flushing.discard(key)
                newer = key in self._pending
                if not ok and not newer:
                    self._pending[key] = text
                if newer:
                    self._arm(key)
                self._idle.notify_all()
        return ok

    def flush_all(self) -> list[str]:
        """Flush every pending or in-flight key; returns the keys whose save failed."""
        with self._lock:
            keys = list(self._pending)
            keys.extend(key for key in self._flushing if key not in self._pending)
        return [key for key in keys if not self.flush(key, wait=True)]

    def cancel(self) -> None:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()
