from __future__ import annotations

from typing import Any, Protocol
from urllib.parse import parse_qs, unquote

from .. import dates
from ..errors import ValidationError
from ..gateway import MutationGateway

PREFIX = "/api/logs"
PERFECT_PATH = PREFIX + "/perfect"


class _ServerHandler(Protocol):
    def _send_json(self, payload: Any, status: int = 200) -> None: ...


def handle_get(handler: _ServerHandler, gateway: MutationGateway, path: str, query: str) -> bool:
    if path == PREFIX:
        params = parse_qs(query)
        start_key = params.get("startDate", [""])[0]
        end_key = params.get("endDate", [""])[0]
        if not start_key or not end_key:
            handler._send_json([])
            return True
        if not dates.is_date_key(start_key) or not dates.is_date_key(end_key):
            raise ValidationError("startDate and endDate must be YYYY-MM-DD")
        entries = gateway.store.get_log_range(start_key, end_key)
        handler._send_json([entry.to_dict() for entry in entries])
        return True
    if path.startswith(PREFIX + "/"):
        date_key = unquote(path[len(PREFIX) + 1 :])
        if not dates.is_date_key(date_key):
            raise ValidationError("dateKey must be YYYY-MM-DD")
        handler._send_json(gateway.store.get_log_by_date(date_key))
        return True
    return False


def handle_post(
    handler: _ServerHandler,
    gateway: MutationGateway,
    path: str,
    payload: dict[str, Any] | None,
) -> bool:
    if path == PERFECT_PATH:
        if payload is None:
            raise ValidationError("json body required")
        date_key = payload.get("dateKey")
        entries = gateway.mark_day_perfect(date_key)
        handler._send_json(
            {
                "success": True,
                "dateKey": date_key,
                "entries": [entry.to_dict() for entry in entries],
            }
        )
        return True
    if path != PREFIX:
        return False
    if payload is None:
        raise ValidationError("json body required")
    entry = gateway.set_log(payload.get("dateKey"), payload.get("habitId"), payload.get("completed"))
    handler._send_json({"success": True, **entry.to_dict()})
    return True
