from __future__ import annotations


class HabitSyncError(Exception):
    """Base class for every error surfaced by habitsync."""


class NotFound(HabitSyncError):
    pass


class Conflict(HabitSyncError):
    pass


class ValidationError(HabitSyncError):
    pass


class StoreUnavailable(HabitSyncError):
    """The persistence layer (or the API in front of it) could not be reached."""


class ChannelDisconnected(HabitSyncError):
    """The push channel dropped. Non-fatal: the session keeps its last snapshot."""


HTTP_STATUS_BY_ERROR: dict[type[HabitSyncError], int] = {
    ValidationError: 400,
    NotFound: 404,
    Conflict: 409,
    StoreUnavailable: 503,
}


def status_for_error(exc: HabitSyncError) -> int:
    for error_type, status in HTTP_STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status
    return 500


def error_for_status(status: int, message: str) -> HabitSyncError:
    for error_type, error_status in HTTP_STATUS_BY_ERROR.items():
        if status == error_status:
            return error_type(message)
    if status >= 500:
        return StoreUnavailable(message)
    return HabitSyncError(message)
