from __future__ import annotations

import json
import os
from http.server import BaseHTTPRequestHandler
from typing import Any

from .errors import HabitSyncError, ValidationError, status_for_error


def send_json_response(
    handler: BaseHTTPRequestHandler,
    payload: dict[str, Any] | list[Any],
    status: int = 200,
) -> None:
    body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    handler.send_response(status)
    handler.send_header("Content-Type", "application/json; charset=utf-8")
    handler.send_header("Content-Length", str(len(body)))
    handler.send_header("Access-Control-Allow-Origin", "*")
    handler.end_headers()
    handler.wfile.write(body)


def send_error_response(handler: BaseHTTPRequestHandler, exc: HabitSyncError) -> None:
    send_json_response(handler, {"error": str(exc)}, status=status_for_error(exc))


def send_internal_error(handler: BaseHTTPRequestHandler, exc: Exception) -> None:
    payload: dict[str, Any] = {"error": "internal server error"}
    if os.environ.get("HABITSYNC_SERVER_DEBUG") == "1":
        payload["detail"] = str(exc)
    send_json_response(handler, payload, status=500)


def read_json_body(handler: BaseHTTPRequestHandler) -> dict[str, Any] | None:
    raw_length = handler.headers.get("Content-Length", "0") or "0"
    try:
        length = int(raw_length)
    except ValueError:
        length = -1
    if length < 0:
        # Unframed body: drop the connection after replying.
        handler.close_connection = True
        raise ValidationError(f"invalid Content-Length: {raw_length!r}")
    raw = handler.rfile.read(length).decode("utf-8") if length else ""
    if not raw:
        return None
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None


def start_event_stream(handler: BaseHTTPRequestHandler) -> None:
    handler.send_response(200)
    handler.send_header("Content-Type", "text/event-stream; charset=utf-8")
    handler.send_header("Cache-Control", "no-store")
    handler.send_header("Connection", "close")
    handler.send_header("Access-Control-Allow-Origin", "*")
    handler.end_headers()
    handler.wfile.flush()


def write_event_frame(handler: BaseHTTPRequestHandler, data: str) -> None:
    handler.wfile.write(f"data: {data}\n\n".encode())
    handler.wfile.flush()


def write_event_comment(handler: BaseHTTPRequestHandler, comment: str) -> None:
    handler.wfile.write(f": {comment}\n\n".encode())
    handler.wfile.flush()
