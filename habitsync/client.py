from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable, Iterator
from http.client import HTTPConnection, HTTPSConnection
from typing import Any
from urllib.parse import quote, urlencode, urlparse

import httpx

from . import events
from .errors import ChannelDisconnected, StoreUnavailable, error_for_status
from .events import ChangeEvent

logger = logging.getLogger(__name__)


def build_base_url(address: str) -> str:
    trimmed = address.strip().rstrip("/")
    if not trimmed:
        return ""
    parsed = urlparse(trimmed)
    if parsed.scheme:
        return trimmed
    return f"http://{trimmed}"


def request_json(
    method: str,
    url: str,
    *,
    body: dict[str, Any] | None = None,
    timeout_s: float = 5.0,
) -> tuple[int, Any]:
    parsed = urlparse(url)
    if not parsed.hostname:
        raise ValueError("missing hostname")
    if parsed.scheme == "https":
        conn = HTTPSConnection(parsed.hostname, parsed.port or 443, timeout=timeout_s)
    else:
        conn = HTTPConnection(parsed.hostname, parsed.port or 80, timeout=timeout_s)
    path = parsed.path or "/"
    if parsed.query:
        path = f"{path}?{parsed.query}"
    request_headers = {"Accept": "application/json"}
    body_bytes = None
    if body is not None:
        body_bytes = json.dumps(body, ensure_ascii=False).encode("utf-8")
        request_headers["Content-Type"] = "application/json"
        request_headers["Content-Length"] = str(len(body_bytes))
    payload: Any = None
    status: int | None = None
    try:
        conn.request(method, path, body=body_bytes, headers=request_headers)
        resp = conn.getresponse()
        status = int(resp.status)
        raw = resp.read()
        if raw:
            try:
                payload = json.loads(raw.decode("utf-8"))
            except json.JSONDecodeError:
                snippet = raw[:240].decode("utf-8", errors="replace").strip()
                payload = {
                    "error": f"non_json_response: {snippet}" if snippet else "non_json_response"
                }
    finally:
        conn.close()
    assert status is not None
    return status, payload


def _until_stopped(lines: Iterator[str], stop: threading.Event | None) -> Iterator[str]:
    for line in lines:
        if stop is not None and stop.is_set():
            return
        yield line


def iter_sse_data(lines: Iterator[str]) -> Iterator[str]:
    """Yield the ``data`` payload of each server-sent event; comments are skipped."""
    buffer: list[str] = []
    for line in lines:
        if line == "":
            if buffer:
                yield "\n".join(buffer)
                buffer = []
            continue
        if line.startswith(":"):
            continue
        if line.startswith("data:"):
            buffer.append(line[5:].lstrip(" "))
    if buffer:
        yield "\n".join(buffer)


class HabitApiClient:
    """Request/response calls against a habitsync server, plus its push channel."""

    def __init__(self, base_url: str, *, timeout_s: float = 5.0) -> None:
        self.base_url = build_base_url(base_url)
        self.timeout_s = timeout_s

    def _request(self, method: str, path: str, body: dict[str, Any] | None = None) -> Any:
        try:
            status, payload = request_json(
                method, f"{self.base_url}{path}", body=body, timeout_s=self.timeout_s
            )
        except OSError as exc:
            raise StoreUnavailable(f"{method} {path}: {exc}") from exc
        if status >= 400:
            message = payload.get("error") if isinstance(payload, dict) else None
            raise error_for_status(status, str(message or f"{method} {path} -> {status}"))
        return payload

    def health(self) -> dict[str, Any]:
        return self._request("GET", "/api/health")

    def get_state(self) -> dict[str, Any]:
        return self._request("GET", "/api/state")

    def list_habits(self) -> list[dict[str, Any]]:
        return self._request("GET", "/api/habits")

    def create_habit(
        self,
        habit_id: str,
        name: str,
        icon: str | None = None,
        category: str | None = None,
    ) -> dict[str, Any]:
        body = {"id": habit_id, "name": name, "icon": icon, "category": category}
        return self._request("POST", "/api/habits", body)

    def update_habit(
        self,
        habit_id: str,
        name: str,
        icon: str | None = None,
        category: str | None = None,
    ) -> dict[str, Any]:
        body = {"name": name, "icon": icon, "category": category}
        return self._request("PUT", f"/api/habits/{quote(habit_id, safe='')}", body)

    def delete_habit(self, habit_id: str) -> dict[str, Any]:
        return self._request("DELETE", f"/api/habits/{quote(habit_id, safe='')}")

    def seed_habits(self) -> list[dict[str, Any]]:
        """Create the starter habits that do not exist yet; returns the ones created."""
        return self._request("POST", "/api/habits/seed", {})

    def get_logs(self, start_key: str, end_key: str) -> list[dict[str, Any]]:
        query = urlencode({"startDate": start_key, "endDate": end_key})
        return self._request("GET", f"/api/logs?{query}")

    def get_log_by_date(self, date_key: str) -> list[dict[str, Any]]:
        return self._request("GET", f"/api/logs/{date_key}")

    def set_log(self, date_key: str, habit_id: str, completed: bool) -> dict[str, Any]:
        body = {"dateKey": date_key, "habitId": habit_id, "completed": completed}
        return self._request("POST", "/api/logs", body)

    def mark_day_perfect(self, date_key: str) -> list[dict[str, Any]]:
        payload = self._request("POST", "/api/logs/perfect", {"dateKey": date_key})
        return list(payload.get("entries") or [])

    def get_daily_note(self, date_key: str) -> str:
        payload = self._request("GET", f"/api/notes/daily/{date_key}")
        return str(payload.get("note") or "")

    def set_daily_note(self, date_key: str, note: str) -> dict[str, Any]:
        return self._request("POST", "/api/notes/daily", {"dateKey": date_key, "note": note})

    def get_global_note(self) -> str:
        payload = self._request("GET", "/api/notes/global")
        return str(payload.get("content") or "")

    def set_global_note(self, content: str) -> dict[str, Any]:
        return self._request("POST", "/api/notes/global", {"content": content})

    def iter_events(
        self,
        *,
        on_open: Callable[[], None] | None = None,
        stop: threading.Event | None = None,
    ) -> Iterator[ChangeEvent]:
        """Stream change events until the channel closes.

        ``on_open`` runs once the server accepted the connection, before any event is
        yielded. Transport failures surface as ``ChannelDisconnected``; malformed frames
        are logged and skipped.
        """
        timeout = httpx.Timeout(self.timeout_s, read=None)
        try:
            with (
                httpx.Client(timeout=timeout) as http,
                http.stream("GET", f"{self.base_url}/api/events") as response,
            ):
                if response.status_code != 200:
                    raise ChannelDisconnected(f"push channel refused: {response.status_code}")
                if on_open is not None:
                    on_open()
                for data in iter_sse_data(_until_stopped(response.iter_lines(), stop)):
                    try:
                        event = events.decode(data)
                    except ValueError as exc:
                        logger.warning("ignoring malformed change event: %s", exc)
                        continue
                    yield event
        except (httpx.HTTPError, httpx.StreamError) as exc:
            if stop is not None and stop.is_set():
                return
            raise ChannelDisconnected(str(exc)) from exc
