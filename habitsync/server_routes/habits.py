from __future__ import annotations

from typing import Any, Protocol
from urllib.parse import unquote

from ..errors import ValidationError
from ..gateway import MutationGateway

PREFIX = "/api/habits"
SEED_PATH = PREFIX + "/seed"


class _ServerHandler(Protocol):
    def _send_json(self, payload: Any, status: int = 200) -> None: ...


def _habit_id_from_path(path: str) -> str | None:
    if not path.startswith(PREFIX + "/"):
        return None
    habit_id = unquote(path[len(PREFIX) + 1 :])
    return habit_id or None


def handle_get(handler: _ServerHandler, gateway: MutationGateway, path: str, query: str) -> bool:
    if path != PREFIX:
        return False
    handler._send_json([habit.to_dict() for habit in gateway.store.list_habits()])
    return True


def handle_post(
    handler: _ServerHandler,
    gateway: MutationGateway,
    path: str,
    payload: dict[str, Any] | None,
) -> bool:
    if path == SEED_PATH:
        handler._send_json([habit.to_dict() for habit in gateway.seed_default_habits()])
        return True
    if path != PREFIX:
        return False
    if payload is None:
        raise ValidationError("json body required")
    habit = gateway.create_habit(
        payload.get("id"),
        payload.get("name"),
        payload.get("icon"),
        payload.get("category"),
    )
    handler._send_json(habit.to_dict())
    return True


def handle_put(
    handler: _ServerHandler,
    gateway: MutationGateway,
    path: str,
    payload: dict[str, Any] | None,
) -> bool:
    habit_id = _habit_id_from_path(path)
    if habit_id is None:
        return False
    if payload is None:
        raise ValidationError("json body required")
    habit = gateway.update_habit(
        habit_id,
        payload.get("name"),
        payload.get("icon"),
        payload.get("category"),
    )
    handler._send_json(habit.to_dict())
    return True


def handle_delete(handler: _ServerHandler, gateway: MutationGateway, path: str) -> bool:
    habit_id = _habit_id_from_path(path)
    if habit_id is None:
        return False
    deleted = gateway.delete_habit(habit_id)
    handler._send_json({"success": True, "id": deleted})
    return True
