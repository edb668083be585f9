"""
Tests for the HTTP and WebSocket API

Runs the app in test mode, so routes are served by the fixture-backed
provider: the Westside commute reads 1550s, 1950s, 2100s, 1600s in turn.
"""

import pytest
from fastapi.testclient import TestClient

from common.errors import ProviderError
from config import Settings
from providers.real_providers import GoogleDirectionsProvider
from server import app, build_monitor

WESTSIDE = {"lat": 34.0689, "long": -118.4452}
DOWNTOWN_LA = {"lat": 34.0522, "long": -118.2437}


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("COMMUTE_MODE", "test")
    # keep the periodic sweep out of the way
    monkeypatch.setenv("CHECK_INTERVAL_MINUTES", "60")
    with TestClient(app) as client:
        yield client


def create_session(client, user_id="user123", **extra):
    body = {
        "user_id": user_id,
        "home_location": DOWNTOWN_LA,
        "current_location": WESTSIDE,
        **extra,
    }
    return client.post("/api/session", json=body)


class FailingRouteProvider:
    async def query(self, origin, destination, timeout=None):
        raise ProviderError("Failed to fetch traffic data: timed out")


class TestSessions:

    def test_create_session_takes_baseline(self, client):
        response = create_session(client, notification_threshold=25)
        assert response.status_code == 200
        session = response.json()["session"]
        assert session["user_id"] == "user123"
        assert session["active"] is True
        assert session["notification_threshold"] == 25
        assert session["current_location"] == WESTSIDE

        traffic = client.get("/api/traffic/user123").json()["traffic"]
        assert traffic["live_duration"] == 1550
        assert traffic["free_flow_duration"] == 1500
        assert traffic["status"] == "calm"

    def test_default_threshold(self, client):
        assert create_session(client).json()["session"]["notification_threshold"] == 20

    def test_get_session(self, client):
        create_session(client)
        response = client.get("/api/session/user123")
        assert response.status_code == 200
        assert response.json()["session"]["last_check"]["live_duration"] == 1550

    @pytest.mark.parametrize("extra", [
        {"notification_threshold": 0},
        {"notification_threshold": -10},
        {"user_id": ""},
    ])
    def test_invalid_request(self, client, extra):
        assert create_session(client, **extra).status_code == 422

    def test_unknown_user(self, client):
        assert client.get("/api/session/nobody").status_code == 404
        assert client.get("/api/traffic/nobody").status_code == 404
        assert client.post("/api/traffic/nobody/check").status_code == 404
        assert client.delete("/api/session/nobody").status_code == 404
        response = client.put("/api/session/nobody/location", json={"location": WESTSIDE})
        assert response.status_code == 404

    def test_location_update(self, client):
        create_session(client)
        new_location = {"lat": 34.0600, "long": -118.3000}

        response = client.put("/api/session/user123/location", json={"location": new_location})

        assert response.json() == {"user_id": "user123", "updated": True}
        assert client.get("/api/session/user123").json()["session"]["current_location"] == new_location

    def test_stop_session_then_location_update_ignored(self, client):
        create_session(client)
        stopped = client.delete("/api/session/user123").json()["session"]
        assert stopped["active"] is False
        assert stopped["deactivated_at"] is not None

        response = client.put("/api/session/user123/location", json={"location": DOWNTOWN_LA})

        assert response.status_code == 200
        assert response.json()["updated"] is False
        assert client.post("/api/traffic/user123/check").json() == {
            "user_id": "user123",
            "checked": False,
            "update": None,
        }

    def test_update_settings(self, client):
        create_session(client)
        response = client.put("/api/session/user123/settings", json={"notification_threshold": 35})
        assert response.status_code == 200
        assert response.json()["session"]["notification_threshold"] == 35

        response = client.put("/api/session/user123/settings", json={"notification_threshold": 0})
        assert response.status_code == 422


class TestTraffic:

    def test_forced_check_notifies(self, client):
        create_session(client)

        response = client.post("/api/traffic/user123/check")

        assert response.status_code == 200
        update = response.json()["update"]
        assert update["condition"]["live_duration"] == 1950
        assert update["condition"]["status"] == "severe"
        assert update["notification"]["type"] == "building_up"
        assert update["notification"]["delay"] == 450
        assert update["notification"]["message"].startswith("Traffic is building up!")

    def test_provider_failure_is_bad_gateway(self, client):
        create_session(client)
        client.app.state.monitor.scheduler.route_provider = FailingRouteProvider()

        response = client.post("/api/traffic/user123/check")

        assert response.status_code == 502
        # the previous reading survives the failed check
        assert client.get("/api/traffic/user123").json()["traffic"]["live_duration"] == 1550


def test_health(client):
    create_session(client)
    health = client.get("/api/health").json()
    assert health["status"] == "healthy"
    assert health["scheduler"] == "running"
    assert health["check_interval_seconds"] == 3600
    assert health["sessions"] == {"total": 1, "active": 1, "inactive": 0}
    assert health["realtime_subscribers"] == 0
    assert health["session_locks"] == 0


def test_health_counts_realtime_subscribers(client):
    with client.websocket_connect("/ws") as ws:
        # a round trip guarantees the server side has subscribed
        ws.send_json({"event": "ping"})
        ws.receive_json()
        assert client.get("/api/health").json()["realtime_subscribers"] == 1


def test_build_monitor_uses_configured_api_key(monkeypatch):
    monkeypatch.delenv("GOOGLE_MAPS_API_KEY", raising=False)
    monitor, _ = build_monitor(Settings(mode="prod", google_maps_api_key="from-settings"))
    route_provider = monitor.scheduler.route_provider
    assert isinstance(route_provider, GoogleDirectionsProvider)
    assert route_provider.api_key == "from-settings"


class TestRealtime:

    def test_check_traffic_pushes_update(self, client):
        create_session(client)
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"event": "check_traffic", "user_id": "user123"})
            message = ws.receive_json()

        assert message["event"] == "traffic_update"
        assert message["data"]["user_id"] == "user123"
        assert message["data"]["condition"]["live_duration"] == 1950

    def test_errors_reported_to_client(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"event": "check_traffic", "user_id": "nobody"})
            unknown = ws.receive_json()
            ws.send_json({"event": "subscribe"})
            unsupported = ws.receive_json()
            ws.send_text("not json")
            invalid = ws.receive_json()
            ws.send_json({"event": "check_traffic", "user_id": ["user123"]})
            bad_user_id = ws.receive_json()
            ws.send_json({"event": "check_traffic"})
            missing_user_id = ws.receive_json()

        assert unknown == {
            "event": "error",
            "user_id": "nobody",
            "detail": "No monitoring session for user nobody",
        }
        assert unsupported["detail"] == "Unsupported command"
        assert invalid["detail"] == "Messages must be JSON"
        assert bad_user_id["detail"] == "user_id must be a non-empty string"
        assert missing_user_id["detail"] == "user_id must be a non-empty string"
