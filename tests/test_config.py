import json
from pathlib import Path

import pytest

from habitsync.config import (
    HabitSyncConfig,
    get_config_path,
    get_env_overrides,
    load_config,
    read_config_file,
)


def test_read_config_file_rejects_invalid_json(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("{not-json}")
    with pytest.raises(ValueError, match="invalid config json"):
        read_config_file(config_path)


def test_read_config_file_rejects_non_object(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("[1, 2]")
    with pytest.raises(ValueError, match="config must be an object"):
        read_config_file(config_path)


def test_read_config_file_missing_or_blank(tmp_path: Path) -> None:
    assert read_config_file(tmp_path / "missing.json") == {}
    blank = tmp_path / "blank.json"
    blank.write_text("  \n")
    assert read_config_file(blank) == {}


def test_get_config_path_uses_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HABITSYNC_CONFIG", str(tmp_path / "custom.json"))
    assert get_config_path() == tmp_path / "custom.json"
    assert get_config_path(tmp_path / "explicit.json") == tmp_path / "explicit.json"


def test_load_config_defaults() -> None:
    cfg = load_config()

    assert cfg.server_host == "127.0.0.1"
    assert cfg.server_port == 3000
    assert cfg.timezone == "UTC"
    assert cfg.state_window_days == 365
    assert cfg.reconnect_max_attempts == 5
    assert cfg.reconnect_base_delay_s == 2.0
    assert cfg.note_debounce_ms == 500
    assert cfg.server_url == "http://127.0.0.1:3000"


def test_load_config_reads_file_then_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "server_port": "4100",
                "timezone": "Asia/Tokyo",
                "reconnect_base_delay_s": 0.5,
                "server_logs": "yes",
                "unknown_key": 1,
            }
        )
    )
    monkeypatch.setenv("HABITSYNC_CONFIG", str(config_path))
    monkeypatch.setenv("HABITSYNC_PORT", "4200")

    cfg = load_config()

    assert cfg.server_port == 4200
    assert cfg.timezone == "Asia/Tokyo"
    assert cfg.reconnect_base_delay_s == 0.5
    assert cfg.server_logs is True
    assert not hasattr(cfg, "unknown_key")


def test_get_env_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HABITSYNC_TIMEZONE", "Europe/Paris")

    overrides = get_env_overrides()

    assert overrides["timezone"] == "Europe/Paris"
    assert overrides["db_path"] == str(tmp_path / "habits.sqlite")


def test_load_config_warns_and_uses_defaults_on_invalid_json(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("{oops")
    with pytest.warns(RuntimeWarning, match="Invalid config file"):
        cfg = load_config(config_path)
    assert cfg.server_port == HabitSyncConfig().server_port


def test_load_config_invalid_int_env_does_not_crash_and_warns(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("HABITSYNC_PORT", "nope")
    with pytest.warns(RuntimeWarning, match="server_port"):
        cfg = load_config()
    assert cfg.server_port == 3000


def test_load_config_invalid_config_value_does_not_crash_and_warns(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"reconnect_base_delay_s": "soon"}))
    with pytest.warns(RuntimeWarning, match="reconnect_base_delay_s"):
        cfg = load_config(config_path)
    assert cfg.reconnect_base_delay_s == 2.0


def test_load_config_warns_on_non_object_file(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text('["server_port", 4000]')
    with pytest.warns(RuntimeWarning, match="config must be an object"):
        cfg = load_config(config_path)
    assert cfg.server_port == HabitSyncConfig().server_port
