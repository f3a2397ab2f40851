"""Tests for the live-dashboard WebSocket channel."""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from salon_api.core.security import create_access_token, create_refresh_token
from salon_api.main import app

WS_URL = "/api/v1/ws/attendance"


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def _token(role: str = "admin") -> str:
    return create_access_token(1, role=role, email="manager@salon.test")


@pytest.mark.parametrize(
    "query",
    ["", "?token=garbage", f"?token={create_refresh_token(1)}"],
)
def test_rejects_missing_or_bad_token(client: TestClient, query: str):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(WS_URL + query) as ws:
            ws.receive_json()
    assert exc.value.code == 1008


def test_rejects_unknown_role(client: TestClient):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"{WS_URL}?token={_token('customer')}") as ws:
            ws.receive_json()
    assert exc.value.code == 1008


def test_connect_ping_and_subscribe(client: TestClient):
    with client.websocket_connect(f"{WS_URL}?token={_token()}") as ws:
        hello = ws.receive_json()
        assert hello["event"] == "connected"
        assert hello["data"]["rooms"] == ["admin_dashboard", "attendance_updates"]

        ws.send_json({"event": "ping", "data": {"n": 1}})
        pong = ws.receive_json()
        assert pong["event"] == "pong"
        assert pong["data"] == {"n": 1}

        ws.send_json({"event": "subscribe_attendance", "data": {"employee_id": 5}})
        assert ws.receive_json()["event"] == "subscribed"

        ws.send_json({"event": "unsubscribe_attendance", "data": 5})
        reply = ws.receive_json()
        assert reply["event"] == "unsubscribed"
        assert reply["data"] == {"employee_id": 5}


def test_malformed_and_unknown_messages(client: TestClient):
    with client.websocket_connect(f"{WS_URL}?token={_token('employee')}") as ws:
        ws.receive_json()

        ws.send_text("this is not json")
        assert ws.receive_json()["event"] == "error"

        ws.send_json(["event", "ping"])
        assert ws.receive_json()["event"] == "error"

        ws.send_json({"event": "launch_rockets"})
        unknown = ws.receive_json()
        assert unknown["event"] == "error"
        assert "launch_rockets" in unknown["data"]["message"]

        ws.send_json({"event": "subscribe_attendance", "data": {}})
        assert ws.receive_json()["data"]["message"] == "employee_id is required"

        # Still usable afterwards
        ws.send_json({"event": "ping"})
        assert ws.receive_json()["event"] == "pong"
