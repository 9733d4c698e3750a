import http.client
import json
from http.client import HTTPResponse
from urllib.parse import urlparse

from habitsync import dates
from habitsync.gateway import DEFAULT_HABITS, PERFECT_DAY_NOTE
from habitsync.client import request_json


def _open_stream(base_url: str) -> tuple[http.client.HTTPConnection, HTTPResponse]:
    parsed = urlparse(base_url)
    conn = http.client.HTTPConnection(parsed.hostname, parsed.port, timeout=5)
    conn.request("GET", "/api/events")
    resp = conn.getresponse()
    assert resp.status == 200
    assert resp.getheader("Content-Type", "").startswith("text/event-stream")
    assert resp.readline() == b": connected\n"
    return conn, resp


def _read_frames(resp: HTTPResponse, count: int) -> list[dict]:
    frames: list[dict] = []
    while len(frames) < count:
        line = resp.readline()
        assert line, "stream closed early"
        if line.startswith(b"data: "):
            frames.append(json.loads(line[len(b"data: ") :]))
    return frames


def test_health(live_server: str) -> None:
    status, payload = request_json("GET", f"{live_server}/api/health")

    assert status == 200
    assert payload["status"] == "ok"
    assert payload["timestamp"]


def test_habit_routes(live_server: str) -> None:
    status, created = request_json(
        "POST", f"{live_server}/api/habits", body={"id": "water", "name": "2L water"}
    )
    assert status == 200
    assert created["icon"] == "•"
    assert created["category"] == "General"

    status, updated = request_json(
        "PUT", f"{live_server}/api/habits/water", body={"name": "3L water", "icon": "💧"}
    )
    assert status == 200
    assert (updated["name"], updated["icon"]) == ("3L water", "💧")

    status, habits = request_json("GET", f"{live_server}/api/habits")
    assert [habit["id"] for habit in habits] == ["water"]

    status, deleted = request_json("DELETE", f"{live_server}/api/habits/water")
    assert (status, deleted) == (200, {"success": True, "id": "water"})


def test_error_statuses(live_server: str) -> None:
    request_json("POST", f"{live_server}/api/habits", body={"id": "water", "name": "Water"})

    cases = [
        ("POST", "/api/habits", {"id": "water", "name": "Again"}, 409),
        ("POST", "/api/habits", None, 400),
        ("POST", "/api/logs", {"dateKey": "2026-03-10", "habitId": "ghost", "completed": True}, 404),
        ("POST", "/api/logs", {"dateKey": "March 10", "habitId": "water", "completed": True}, 400),
        ("POST", "/api/logs", {"dateKey": "2026-03-10", "habitId": "water", "completed": 1}, 400),
        ("PUT", "/api/habits/ghost", {"name": "Ghost"}, 404),
        ("DELETE", "/api/habits/ghost", None, 404),
        ("GET", "/api/logs?startDate=bad&endDate=2026-03-10", None, 400),
        ("GET", "/api/nothing", None, 404),
    ]
    for method, path, body, expected in cases:
        status, payload = request_json(method, f"{live_server}{path}", body=body)
        assert status == expected, (method, path, payload)
        assert payload["error"]


def test_log_and_note_routes(live_server: str) -> None:
    request_json("POST", f"{live_server}/api/habits", body={"id": "water", "name": "Water"})

    status, saved = request_json(
        "POST",
        f"{live_server}/api/logs",
        body={"dateKey": "2026-03-10", "habitId": "water", "completed": True},
    )
    assert status == 200
    assert saved == {"success": True, "dateKey": "2026-03-10", "habitId": "water", "completed": True}

    _, entries = request_json(
        "GET", f"{live_server}/api/logs?startDate=2026-03-01&endDate=2026-03-31"
    )
    assert entries == [{"dateKey": "2026-03-10", "habitId": "water", "completed": True}]
    _, unbounded = request_json("GET", f"{live_server}/api/logs")
    assert unbounded == []
    _, by_date = request_json("GET", f"{live_server}/api/logs/2026-03-10")
    assert by_date[0]["name"] == "Water"

    request_json(
        "POST", f"{live_server}/api/notes/daily", body={"dateKey": "2026-03-10", "note": "good"}
    )
    _, daily = request_json("GET", f"{live_server}/api/notes/daily/2026-03-10")
    assert (daily["dateKey"], daily["note"]) == ("2026-03-10", "good")
    _, empty_daily = request_json("GET", f"{live_server}/api/notes/daily/2026-03-11")
    assert empty_daily["note"] == ""

    _, before = request_json("GET", f"{live_server}/api/notes/global")
    assert before == {"content": "", "updatedAt": None}
    request_json("POST", f"{live_server}/api/notes/global", body={"content": "goals"})
    _, after = request_json("GET", f"{live_server}/api/notes/global")
    assert after["content"] == "goals"


def test_seed_and_perfect_routes(live_server: str) -> None:
    status, created = request_json("POST", f"{live_server}/api/habits/seed")
    assert status == 200
    assert [habit["id"] for habit in created] == [item["id"] for item in DEFAULT_HABITS]
    _, again = request_json("POST", f"{live_server}/api/habits/seed")
    assert again == []

    status, result = request_json(
        "POST", f"{live_server}/api/logs/perfect", body={"dateKey": "2026-03-10"}
    )
    assert status == 200
    assert result["dateKey"] == "2026-03-10"
    assert len(result["entries"]) == len(DEFAULT_HABITS)
    assert all(entry["completed"] is True for entry in result["entries"])
    _, daily = request_json("GET", f"{live_server}/api/notes/daily/2026-03-10")
    assert daily["note"] == PERFECT_DAY_NOTE

    status, payload = request_json(
        "POST", f"{live_server}/api/logs/perfect", body={"dateKey": "tomorrow"}
    )
    assert status == 400
    assert payload["error"]


def test_malformed_content_length_gets_json_error(live_server: str) -> None:
    parsed = urlparse(live_server)
    for method in ["POST", "PUT"]:
        path = "/api/habits" if method == "POST" else "/api/habits/water"
        conn = http.client.HTTPConnection(parsed.hostname, parsed.port, timeout=5)
        try:
            conn.putrequest(method, path)
            conn.putheader("Content-Type", "application/json")
            conn.putheader("Content-Length", "abc")
            conn.endheaders()
            resp = conn.getresponse()
            assert resp.status == 400
            assert "Content-Length" in json.loads(resp.read())["error"]
        finally:
            conn.close()


def test_state_returns_materialized_window(live_server: str) -> None:
    today = dates.today_key()
    request_json("POST", f"{live_server}/api/habits", body={"id": "a", "name": "A"})
    request_json("POST", f"{live_server}/api/habits", body={"id": "b", "name": "B"})
    request_json(
        "POST",
        f"{live_server}/api/logs",
        body={"dateKey": today, "habitId": "a", "completed": True},
    )

    status, state = request_json("GET", f"{live_server}/api/state")

    assert status == 200
    assert [habit["id"] for habit in state["habits"]] == ["a", "b"]
    assert state["logByDate"] == {today: {"a": True, "b": False}}
    assert state["globalNote"] == ""
    assert state["lastSaved"]


def test_event_stream_delivers_successful_mutations_in_order(live_server: str) -> None:
    conn, resp = _open_stream(live_server)
    other_conn, other_resp = _open_stream(live_server)
    try:
        request_json("POST", f"{live_server}/api/habits", body={"id": "water", "name": "Water"})
        # Rejected writes publish nothing.
        request_json("POST", f"{live_server}/api/habits", body={"id": "water", "name": "Dup"})
        request_json(
            "POST",
            f"{live_server}/api/logs",
            body={"dateKey": "2026-03-10", "habitId": "water", "completed": True},
        )
        request_json("DELETE", f"{live_server}/api/habits/water")

        for stream in (resp, other_resp):
            frames = _read_frames(stream, 3)
            assert [frame["type"] for frame in frames] == [
                "habit_created",
                "log_updated",
                "habit_deleted",
            ]
            assert frames[0]["data"]["name"] == "Water"
            assert frames[1]["data"] == {
                "dateKey": "2026-03-10",
                "habitId": "water",
                "completed": True,
            }
            assert frames[2]["data"] == {"id": "water"}
    finally:
        conn.close()
        other_conn.close()


def test_options_preflight(live_server: str) -> None:
    parsed = urlparse(live_server)
    conn = http.client.HTTPConnection(parsed.hostname, parsed.port, timeout=2)
    try:
        conn.request("OPTIONS", "/api/habits")
        resp = conn.getresponse()
        assert resp.status == 204
        assert resp.getheader("Access-Control-Allow-Origin") == "*"
    finally:
        conn.close()
