"""Tests for the /ws channel endpoint."""

import pytest
from fastapi.testclient import TestClient

from courtside.config import Settings
from courtside.main import app
from courtside.services.court_authority import CourtAuthority


@pytest.fixture
def client():
    """TestClient running the real lifespan around a fresh authority."""
    app.state.authority = CourtAuthority(
        Settings(
            archive_path=":memory:",
            court_status_interval_seconds=3600.0,
            rate_limit_max_events=5,
        )
    )
    with TestClient(app) as client:
        yield client
    del app.state.authority


def send(ws, event, data=None):
    ws.send_json({"event": event, "data": data or {}})


def receive_until(ws, event):
    """Read frames until one named `event` arrives; return its data."""
    for _ in range(20):
        frame = ws.receive_json()
        if frame["event"] == event:
            return frame["data"]
    raise AssertionError(f"no {event} frame received")


class TestChannelBasics:
    """Connection setup and event handling."""

    def test_court_status_on_connect(self, client):
        with client.websocket_connect("/ws") as ws:
            frame = ws.receive_json()

        assert frame["event"] == "court-status"
        assert frame["data"]["isOpen"] is True

    def test_join_queue_broadcasts_to_all(self, client):
        with client.websocket_connect("/ws") as first, client.websocket_connect("/ws") as second:
            first.receive_json()
            second.receive_json()

            send(first, "join-queue", {"teamName": "Alpha", "members": 2})

            for ws in (first, second):
                update = receive_until(ws, "queue-updated")
                assert update["event"] == "team_joined"
                assert update["teams"][0]["name"] == "Alpha"

    def test_join_queue_personal_notification(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            send(ws, "join-queue", {"name": "Alpha", "members": 2})

            receive_until(ws, "queue-updated")
            public = receive_until(ws, "notification")
            personal = receive_until(ws, "notification")

        assert public["title"] == "Team Joined"
        assert personal["title"] == "Joined Queue"

    def test_error_goes_to_sender_with_action(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            send(ws, "confirm-result", {"matchId": "m", "teamId": "t", "confirmed": True})

            error = receive_until(ws, "error")

        assert error["code"] == "MATCH_NOT_FOUND"
        assert error["action"] == "confirm-result"

    def test_validation_error(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            send(ws, "join-queue", {"teamName": "", "members": 2})

            error = receive_until(ws, "error")

        assert error["code"] == "VALIDATION_ERROR"
        assert error["action"] == "join-queue"

    def test_unknown_event_and_malformed_frame(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            send(ws, "fly-away")
            assert receive_until(ws, "error")["code"] == "UNKNOWN_EVENT"

            ws.send_text("not json")
            assert receive_until(ws, "error")["code"] == "VALIDATION_ERROR"

    def test_invalid_room(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            send(ws, "join-room", {"room": "vip"})

            error = receive_until(ws, "error")

        assert error["code"] == "INVALID_ROOM"

    def test_rate_limit(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            for _ in range(6):
                send(ws, "leave-room", {"room": "admin"})

            error = receive_until(ws, "error")

        assert error["code"] == "RATE_LIMIT_EXCEEDED"


class TestAdminActions:
    """admin-action handling over the channel."""

    def test_admin_room_required(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            send(ws, "admin-action", {"action": "start_match", "data": {}})

            error = receive_until(ws, "error")

        assert error["code"] == "ADMIN_REQUIRED"

    def test_start_match_and_score(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            send(ws, "join-room", {"room": "admin"})
            receive_until(ws, "notification")
            for name in ("Alpha", "Bravo"):
                send(ws, "join-queue", {"teamName": name, "members": 2})
                receive_until(ws, "queue-updated")

            send(ws, "admin-action", {"action": "start_match", "data": {"targetScore": 11}, "adminId": "ref"})
            started = receive_until(ws, "match-updated")
            assert started["event"] == "match_started"
            assert started["match"]["targetScore"] == 11

            match_id = started["match"]["id"]
            send(ws, "admin-action", {"action": "update_score", "data": {"matchId": match_id, "score1": 11, "score2": 4}})
            ended = receive_until(ws, "match-updated")

        assert ended["event"] == "match_ended"
        assert ended["match"]["status"] == "confirming"

    def test_unknown_admin_action(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            send(ws, "join-room", {"room": "admin"})
            send(ws, "admin-action", {"action": "launch", "data": {}})

            error = receive_until(ws, "error")

        assert error["code"] == "UNKNOWN_ACTION"
