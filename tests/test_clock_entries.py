"""Tests for POST /staff/clock-entries (clock-in / clock-out)."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from swadeshi.api.auth import get_current_user
from swadeshi.api.factory import create_app

from helpers import OTHER_RESTAURANT_ID, RESTAURANT_ID, _make_user, _mock_txn

URL = "/staff/clock-entries"
MODULE = "swadeshi.api.routes.clock_entries"
STAFF_ID = "55555555-5555-5555-5555-555555555555"

OPEN_SESSION = {
    "id": "sess-1",
    "staff_id": STAFF_ID,
    "restaurant_id": RESTAURANT_ID,
    "clock_in": "2026-10-19T09:00:00+00:00",
    "clock_out": None,
    "notes": "morning",
    "shift_id": None,
}


@pytest.fixture
def client():
    app = create_app(role="public")
    app.dependency_overrides[get_current_user] = lambda: _make_user()
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def store():
    """Fake staff_time_clock holding at most the sessions the route creates."""
    sessions: list[dict] = []
    fake_txn, cursor = _mock_txn()

    def find_open_session(cur, *, staff_id):
        for session in sessions:
            if session["staff_id"] == staff_id and session["clock_out"] is None:
                return dict(session)
        return None

    def insert_clock_in(cur, *, staff_id, restaurant_id, notes):
        session = {**OPEN_SESSION, "id": f"sess-{len(sessions) + 1}", "notes": notes}
        sessions.append(session)
        return dict(session)

    def close_session(cur, *, session_id, notes, clock_out_at=None):
        for session in sessions:
            if session["id"] == session_id and session["clock_out"] is None:
                session["clock_out"] = "2026-10-19T17:00:00+00:00"
                session["notes"] = notes
                return dict(session)
        return None

    with patch(f"{MODULE}.txn", fake_txn), patch(
        f"{MODULE}.lock_staff",
        return_value={"id": STAFF_ID, "restaurant_id": RESTAURANT_ID, "status": "active"},
    ) as lock_staff, patch(
        f"{MODULE}.find_open_session", side_effect=find_open_session
    ), patch(
        f"{MODULE}.insert_clock_in", side_effect=insert_clock_in
    ) as insert_mock, patch(
        f"{MODULE}.close_session", side_effect=close_session
    ) as close_mock, patch(
        f"{MODULE}.set_staff_status"
    ) as status_mock:
        yield {
            "sessions": sessions,
            "lock_staff": lock_staff,
            "insert_clock_in": insert_mock,
            "close_session": close_mock,
            "set_staff_status": status_mock,
        }


def _punch(client, action, **extra):
    body = {"staff_id": STAFF_ID, "restaurant_id": RESTAURANT_ID, "action": action}
    body.update(extra)
    return client.post(URL, json=body)


class TestClockIn:
    def test_clock_in(self, client, store):
        response = _punch(client, "in", notes="morning")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["action"] == "in"
        assert data["data"][0]["staff_id"] == STAFF_ID
        assert data["data"][0]["notes"] == "morning"
        store["lock_staff"].assert_called_once()
        assert store["lock_staff"].call_args.kwargs == {"restaurant_id": RESTAURANT_ID, "staff_id": STAFF_ID}
        assert store["set_staff_status"].call_args.kwargs["status"] == "working"

    def test_double_clock_in_rejected(self, client, store):
        first = _punch(client, "in")
        second = _punch(client, "in")

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.json() == {
            "error": "Active session exists",
            "message": "You already have an active clock-in session",
        }
        assert store["insert_clock_in"].call_count == 1
        assert len(store["sessions"]) == 1


class TestClockOut:
    def test_clock_out_merges_notes(self, client, store):
        _punch(client, "in", notes="morning")
        response = _punch(client, "out", notes="left early")

        assert response.status_code == 200
        record = response.json()["data"][0]
        assert record["clock_out"] is not None
        assert record["notes"] == "morning left early"
        assert store["set_staff_status"].call_args.kwargs["status"] == "active"

    def test_clock_out_without_session(self, client, store):
        response = _punch(client, "out")
        assert response.status_code == 400
        assert response.json()["error"] == "No active session"
        store["close_session"].assert_not_called()

    def test_clock_out_race_with_auto_close(self, client, store):
        _punch(client, "in")
        store["close_session"].side_effect = None
        store["close_session"].return_value = None

        response = _punch(client, "out")

        assert response.status_code == 400
        assert response.json()["message"] == "Session was already closed"


class TestClockEntryValidation:
    @pytest.mark.parametrize("action", ["pause", "", None])
    def test_invalid_action(self, client, store, action):
        response = _punch(client, action)
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid action", "message": "Action must be 'in' or 'out'"}

    def test_missing_staff_id(self, client, store):
        response = client.post(URL, json={"restaurant_id": RESTAURANT_ID, "action": "in"})
        assert response.status_code == 400
        assert response.json()["error"] == "Missing required fields: staff_id"

    def test_malformed_staff_id_is_400(self, client, store):
        response = _punch(client, "in", staff_id="s1")
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request body"
        assert "staff_id" in response.json()["details"]
        store["lock_staff"].assert_not_called()

    def test_unknown_staff(self, client, store):
        store["lock_staff"].return_value = None
        response = _punch(client, "in")
        assert response.status_code == 404
        assert response.json() == {"error": "Staff member not found"}
        store["insert_clock_in"].assert_not_called()

    def test_other_restaurant_forbidden(self, client, store):
        response = _punch(client, "in", restaurant_id=OTHER_RESTAURANT_ID)
        assert response.status_code == 403
        store["lock_staff"].assert_not_called()

    def test_db_failure_is_500(self, client, store):
        store["lock_staff"].side_effect = RuntimeError("connection reset")
        response = _punch(client, "in")
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to record clock entry"}
