from __future__ import annotations

import datetime as dt
import logging
import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from . import dates, events
from .channel import Broadcaster
from .config import HabitSyncConfig, load_config
from .errors import HabitSyncError
from .gateway import MutationGateway
from .server_http import (
    read_json_body,
    send_error_response,
    send_internal_error,
    send_json_response,
    start_event_stream,
    write_event_comment,
    write_event_frame,
)
from .server_routes import habits as routes_habits
from .server_routes import logs as routes_logs
from .server_routes import notes as routes_notes
from .store import LogStore

logger = logging.getLogger(__name__)

EVENTS_PATH = "/api/events"
KEEPALIVE_S = 15.0


def build_handler(
    broadcaster: Broadcaster,
    *,
    db_path: Path | str | None = None,
    config: HabitSyncConfig | None = None,
    keepalive_s: float = KEEPALIVE_S,
) -> type[BaseHTTPRequestHandler]:
    cfg = config or load_config()
    resolved_db = Path(db_path or cfg.db_path).expanduser()
    mutation_lock = threading.Lock()

    class HabitHandler(BaseHTTPRequestHandler):
        def log_message(self, format: str, *args: object) -> None:  # noqa: A003
            if cfg.server_logs:
                super().log_message(format, *args)

        def _send_json(self, payload: Any, status: int = 200) -> None:
            send_json_response(self, payload, status=status)

        def _gateway(self) -> MutationGateway:
            store = LogStore(resolved_db)
            return MutationGateway(store, broadcaster.publish, lock=mutation_lock)

        def _dispatch(self, route: Any) -> None:
            gateway: MutationGateway | None = None
            try:
                gateway = self._gateway()
                if route(gateway):
                    return
                self._send_json({"error": "not found"}, status=404)
            except HabitSyncError as exc:
                logger.info("%s %s failed: %s", self.command, self.path, exc)
                send_error_response(self, exc)
            except Exception as exc:
                logger.exception("%s %s crashed", self.command, self.path)
                send_internal_error(self, exc)
            finally:
                if gateway is not None:
                    gateway.store.close()

        def do_OPTIONS(self) -> None:  # noqa: N802
            self.send_response(204)
            self.send_header("Access-Control-Allow-Origin", "*")
            self.send_header("Access-Control-Allow-Methods", "GET, POST, PUT, DELETE, OPTIONS")
            self.send_header("Access-Control-Allow-Headers", "Content-Type")
            self.end_headers()

        def do_GET(self) -> None:  # noqa: N802
            parsed = urlparse(self.path)
            if parsed.path == "/api/health":
                self._send_json({"status": "ok", "timestamp": dt.datetime.now(dt.UTC).isoformat()})
                return
            if parsed.path == EVENTS_PATH:
                self._stream_events()
                return

            def route(gateway: MutationGateway) -> bool:
                if parsed.path == "/api/state":
                    today = dates.today_in(cfg.timezone)
                    self._send_json(
                        gateway.full_state(today, window_days=cfg.state_window_days)
                    )
                    return True
                return (
                    routes_habits.handle_get(self, gateway, parsed.path, parsed.query)
                    or routes_logs.handle_get(self, gateway, parsed.path, parsed.query)
                    or routes_notes.handle_get(self, gateway, parsed.path, parsed.query)
                )

            self._dispatch(route)

        def do_POST(self) -> None:  # noqa: N802
            parsed = urlparse(self.path)

            def route(gateway: MutationGateway) -> bool:
                payload = read_json_body(self)
                return (
                    routes_habits.handle_post(self, gateway, parsed.path, payload)
                    or routes_logs.handle_post(self, gateway, parsed.path, payload)
                    or routes_notes.handle_post(self, gateway, parsed.path, payload)
                )

            self._dispatch(route)

        def do_PUT(self) -> None:  # noqa: N802
            parsed = urlparse(self.path)

            def route(gateway: MutationGateway) -> bool:
                payload = read_json_body(self)
                return routes_habits.handle_put(self, gateway, parsed.path, payload)

            self._dispatch(route)

        def do_DELETE(self) -> None:  # noqa: N802
            parsed = urlparse(self.path)
            self._dispatch(lambda gateway: routes_habits.handle_delete(self, gateway, parsed.path))

        def _stream_events(self) -> None:
            sub = broadcaster.subscribe()
            try:
                start_event_stream(self)
                write_event_comment(self, "connected")
                while True:
                    event = sub.get(timeout=keepalive_s)
                    if event is None:
                        if sub.closed:
                            break
                        write_event_comment(self, "keep-alive")
                        continue
                    write_event_frame(self, events.encode(event))
            except (BrokenPipeError, ConnectionResetError) as exc:
                logger.debug("channel subscriber %s went away: %s", sub.id, exc)
            finally:
                sub.close()

    return HabitHandler


class HabitSyncServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(
        self,
        address: tuple[str, int],
        *,
        db_path: Path | str | None = None,
        config: HabitSyncConfig | None = None,
        keepalive_s: float = KEEPALIVE_S,
    ) -> None:
        cfg = config or load_config()
        self.broadcaster = Broadcaster(queue_size=cfg.channel_queue_size)
        handler = build_handler(
            self.broadcaster, db_path=db_path, config=cfg, keepalive_s=keepalive_s
        )
        super().__init__(address, handler)

    def server_close(self) -> None:
        self.broadcaster.close()
        super().server_close()


def _port_open(host: str, port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.settimeout(0.2)
        try:
            return sock.connect_ex((host, port)) == 0
        except OSError:
            return False


def start_server(
    host: str,
    port: int,
    *,
    db_path: Path | str | None = None,
    config: HabitSyncConfig | None = None,
    background: bool = False,
) -> HabitSyncServer | None:
    """Serve the API and push channel. Returns ``None`` when the port is already taken."""
    if _port_open(host, port):
        logger.warning("habitsync server already listening on %s:%s", host, port)
        return None
    server = HabitSyncServer((host, port), db_path=db_path, config=config)
    logger.info("habitsync server listening on http://%s:%s", host, port)
    if background:
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        return server
    try:
        server.serve_forever()
    finally:
        server.server_close()
    return server
