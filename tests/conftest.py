from __future__ import annotations

import threading
from pathlib import Path

import pytest

from habitsync.config import CONFIG_ENV_OVERRIDES, HabitSyncConfig
from habitsync.server import HabitSyncServer


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for env_var in CONFIG_ENV_OVERRIDES.values():
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.delenv("HABITSYNC_SERVER_DEBUG", raising=False)
    monkeypatch.setenv("HABITSYNC_CONFIG", str(tmp_path / "config.json"))
    monkeypatch.setenv("HABITSYNC_DB", str(tmp_path / "habits.sqlite"))


@pytest.fixture
def live_server(tmp_path: Path):
    """Real server on an ephemeral port with a fast keep-alive, yielding its base URL."""
    server = HabitSyncServer(
        ("127.0.0.1", 0),
        db_path=tmp_path / "server.sqlite",
        config=HabitSyncConfig(),
        keepalive_s=0.1,
    )
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{int(server.server_address[1])}"
    finally:
        server.shutdown()
        server.server_close()
