import socket
import threading

import pytest

from habitsync.client import HabitApiClient, build_base_url, iter_sse_data
from habitsync.errors import (
    ChannelDisconnected,
    Conflict,
    NotFound,
    StoreUnavailable,
    ValidationError,
    error_for_status,
)
from habitsync.events import ChangeEvent, HabitCreated, LogUpdated


def _unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return int(sock.getsockname()[1])


def test_build_base_url() -> None:
    assert build_base_url("127.0.0.1:3000/") == "http://127.0.0.1:3000"
    assert build_base_url("https://habits.example") == "https://habits.example"
    assert build_base_url("  ") == ""


def test_iter_sse_data_skips_comments_and_joins_lines() -> None:
    lines = [": connected", "", "data: one", "", ": keep-alive", "", "data: a", "data: b", ""]

    assert list(iter_sse_data(iter(lines))) == ["one", "a\nb"]


def test_error_for_status() -> None:
    assert isinstance(error_for_status(400, "x"), ValidationError)
    assert isinstance(error_for_status(404, "x"), NotFound)
    assert isinstance(error_for_status(409, "x"), Conflict)
    assert isinstance(error_for_status(502, "x"), StoreUnavailable)
    assert type(error_for_status(418, "x")).__name__ == "HabitSyncError"


def test_client_round_trip(live_server: str) -> None:
    client = HabitApiClient(live_server)

    assert client.health()["status"] == "ok"
    created = client.create_habit("water", "2L water", "💧", "Health")
    assert created["id"] == "water"
    client.set_log("2026-03-10", "water", True)
    client.set_daily_note("2026-03-10", "hydrated")
    client.set_global_note("drink more")

    assert client.list_habits()[0]["name"] == "2L water"
    assert client.get_logs("2026-03-01", "2026-03-31") == [
        {"dateKey": "2026-03-10", "habitId": "water", "completed": True}
    ]
    assert client.get_log_by_date("2026-03-10")[0]["icon"] == "💧"
    assert client.get_daily_note("2026-03-10") == "hydrated"
    assert client.get_global_note() == "drink more"
    assert client.update_habit("water", "3L water")["icon"] == "💧"
    assert client.delete_habit("water") == {"success": True, "id": "water"}


def test_client_seed_and_mark_day_perfect(live_server: str) -> None:
    client = HabitApiClient(live_server)

    created = client.seed_habits()
    assert created
    assert client.seed_habits() == []

    entries = client.mark_day_perfect("2026-03-10")
    assert {entry["habitId"] for entry in entries} == {habit["id"] for habit in created}
    assert client.get_daily_note("2026-03-10")
    with pytest.raises(ValidationError):
        client.mark_day_perfect("not-a-day")


def test_client_maps_error_statuses(live_server: str) -> None:
    client = HabitApiClient(live_server)
    client.create_habit("water", "Water")

    with pytest.raises(Conflict):
        client.create_habit("water", "Water")
    with pytest.raises(NotFound):
        client.set_log("2026-03-10", "ghost", True)
    with pytest.raises(ValidationError):
        client.set_log("bad", "water", True)
    with pytest.raises(NotFound):
        client.delete_habit("ghost")


def test_unreachable_server_is_unavailable() -> None:
    client = HabitApiClient(f"127.0.0.1:{_unused_port()}", timeout_s=1.0)

    with pytest.raises(StoreUnavailable):
        client.get_state()
    with pytest.raises(ChannelDisconnected):
        next(client.iter_events())


def test_iter_events_streams_until_stopped(live_server: str) -> None:
    client = HabitApiClient(live_server)
    received: list[ChangeEvent] = []
    opened = threading.Event()
    got_two = threading.Event()
    stop = threading.Event()

    def run() -> None:
        for event in client.iter_events(on_open=opened.set, stop=stop):
            received.append(event)
            if len(received) == 2:
                got_two.set()

    reader = threading.Thread(target=run, daemon=True)
    reader.start()
    assert opened.wait(5)

    client.create_habit("water", "Water")
    client.set_log("2026-03-10", "water", True)

    assert got_two.wait(5)
    stop.set()
    reader.join(timeout=5)
    assert not reader.is_alive()
    assert isinstance(received[0], HabitCreated)
    assert received[1] == LogUpdated(date_key="2026-03-10", habit_id="water", completed=True)
