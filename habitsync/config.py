from __future__ import annotations

import json
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("~/.config/habitsync/config.json").expanduser()

CONFIG_ENV_OVERRIDES = {
    "db_path": "HABITSYNC_DB",
    "server_host": "HABITSYNC_HOST",
    "server_port": "HABITSYNC_PORT",
    "server_logs": "HABITSYNC_SERVER_LOGS",
    "timezone": "HABITSYNC_TIMEZONE",
    "state_window_days": "HABITSYNC_STATE_WINDOW_DAYS",
    "reconnect_max_attempts": "HABITSYNC_RECONNECT_MAX_ATTEMPTS",
    "reconnect_base_delay_s": "HABITSYNC_RECONNECT_BASE_DELAY_S",
    "note_debounce_ms": "HABITSYNC_NOTE_DEBOUNCE_MS",
    "channel_queue_size": "HABITSYNC_CHANNEL_QUEUE_SIZE",
}

_INT_KEYS = {
    "server_port",
    "state_window_days",
    "reconnect_max_attempts",
    "note_debounce_ms",
    "channel_queue_size",
}
_FLOAT_KEYS = {"reconnect_base_delay_s"}
_BOOL_KEYS = {"server_logs"}


def get_config_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("HABITSYNC_CONFIG", DEFAULT_CONFIG_PATH))
    return candidate.expanduser()


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    config_path = get_config_path(path)
    if not config_path.exists():
        return {}
    raw = config_path.read_text()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid config json: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be an object")
    return data


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in CONFIG_ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


@dataclass
class HabitSyncConfig:
    db_path: str = "~/.habitsync.sqlite"
    server_host: str = "127.0.0.1"
    server_port: int = 3000
    server_logs: bool = False
    # Every DateKey is computed in this zone; mixing zones shifts days by one.
    timezone: str = "UTC"
    state_window_days: int = 365
    reconnect_max_attempts: int = 5
    reconnect_base_delay_s: float = 2.0
    note_debounce_ms: int = 500
    channel_queue_size: int = 256

    @property
    def server_url(self) -> str:
        return f"http://{self.server_host}:{self.server_port}"


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    if value.lower() in {"1", "true", "yes", "on"}:
        return True
    if value.lower() in {"0", "false", "off", "no"}:
        return False
    return default


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _parse_float(value: object, default: float, *, key: str) -> float:
    if value is None:
        return default
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid float for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _coerce_bool(value: object, default: bool, *, key: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return _parse_bool(value, default)
    warnings.warn(f"Invalid bool for {key}: {value!r}", RuntimeWarning, stacklevel=2)
    return default


def load_config(path: Path | None = None) -> HabitSyncConfig:
    cfg = HabitSyncConfig()
    try:
        data = read_config_file(path)
    except ValueError as exc:
        warnings.warn(
            f"Invalid config file {get_config_path(path)}: {exc}; using defaults",
            RuntimeWarning,
            stacklevel=2,
        )
        data = {}
    cfg = _apply_dict(cfg, data)
    cfg = _apply_dict(cfg, get_env_overrides())
    return cfg


def _apply_dict(cfg: HabitSyncConfig, data: dict[str, Any]) -> HabitSyncConfig:
    for key, value in data.items():
        if not hasattr(cfg, key) or key == "server_url":
            continue
        if key in _INT_KEYS:
            setattr(cfg, key, _parse_int(value, getattr(cfg, key), key=key))
            continue
        if key in _FLOAT_KEYS:
            setattr(cfg, key, _parse_float(value, getattr(cfg, key), key=key))
            continue
        if key in _BOOL_KEYS:
            setattr(cfg, key, _coerce_bool(value, getattr(cfg, key), key=key))
            continue
        setattr(cfg, key, str(value))
    return cfg
