from __future__ import annotations

from typing import Any, Protocol
from urllib.parse import unquote

from .. import dates
from ..errors import ValidationError
from ..gateway import MutationGateway

DAILY_PREFIX = "/api/notes/daily"
GLOBAL_PATH = "/api/notes/global"


class _ServerHandler(Protocol):
    def _send_json(self, payload: Any, status: int = 200) -> None: ...


def handle_get(handler: _ServerHandler, gateway: MutationGateway, path: str, query: str) -> bool:
    if path == GLOBAL_PATH:
        note = gateway.store.get_global_note()
        handler._send_json(
            {"content": note.content if note else "", "updatedAt": note.updated_at if note else None}
        )
        return True
    if path.startswith(DAILY_PREFIX + "/"):
        date_key = unquote(path[len(DAILY_PREFIX) + 1 :])
        if not dates.is_date_key(date_key):
            raise ValidationError("dateKey must be YYYY-MM-DD")
        daily = gateway.store.get_daily_note(date_key)
        handler._send_json(
            {
                "dateKey": date_key,
                "note": daily.note if daily else "",
                "updatedAt": daily.updated_at if daily else None,
            }
        )
        return True
    return False


def handle_post(
    handler: _ServerHandler,
    gateway: MutationGateway,
    path: str,
    payload: dict[str, Any] | None,
) -> bool:
    if path not in {DAILY_PREFIX, GLOBAL_PATH}:
        return False
    if payload is None:
        raise ValidationError("json body required")
    if path == DAILY_PREFIX:
        saved = gateway.set_daily_note(payload.get("dateKey"), payload.get("note"))
    else:
        saved = gateway.set_global_note(payload.get("content"))
    handler._send_json({"success": True, **saved.to_dict()})
    return True
