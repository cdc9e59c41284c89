"""
==============================================================================
API Integration Tests
==============================================================================

Tests for REST API endpoints and the scan WebSocket.

==============================================================================
"""

import asyncio
import time

from fastapi.testclient import TestClient

from scanbench.core import exceptions


def receive_until(websocket, message_type: str, limit: int = 20) -> dict:
    """Read WebSocket messages until one of the given type arrives."""
    for _ in range(limit):
        message = websocket.receive_json()
        if message["type"] == message_type:
            return message
    raise AssertionError(f"No '{message_type}' message received")


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_health_check(self, client: TestClient):
        """Test health check returns status."""
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["details"]["session_state"] == "idle"
        assert "fake" in data["details"]["engines"]

    def test_readiness_probe(self, client: TestClient):
        """Test readiness probe."""
        response = client.get("/api/v1/health/ready")
        assert response.status_code == 200
        assert response.json()["ready"] is True

    def test_liveness_probe(self, client: TestClient):
        """Test liveness probe."""
        response = client.get("/api/v1/health/live")
        assert response.status_code == 200
        assert response.json()["alive"] is True


class TestSessionEndpoints:
    """Tests for session control endpoints."""

    def test_initial_session_is_idle(self, client: TestClient):
        """Test snapshot before any start."""
        response = client.get("/api/v1/session")
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["session"]["state"] == "idle"
        assert data["session"]["session_id"] is None

    def test_start_session(self, client: TestClient):
        """Test starting a session with the default body."""
        response = client.post("/api/v1/session/start", json={"engine": "fake"})
        assert response.status_code == 200
        session = response.json()["session"]
        assert session["state"] == "running"
        assert session["active_engine"] == "fake"
        assert session["active_constraint_index"] == 0
        assert session["chain_length"] >= 1

    def test_start_without_body(self, client: TestClient):
        """Test that an empty start uses defaults."""
        response = client.post("/api/v1/session/start")
        assert response.status_code == 200
        assert response.json()["session"]["active_engine"] == "fake"

    def test_start_invalid_profile(self, client: TestClient):
        """Test start with an unknown profile."""
        response = client.post("/api/v1/session/start", json={"profile": "gigantic"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_PROFILE"

    def test_start_unknown_engine(self, client: TestClient):
        """Test start with an unregistered engine."""
        response = client.post("/api/v1/session/start", json={"engine": "laser"})
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "ENGINE_NOT_FOUND"

    def test_start_failure(self, client: TestClient, engine):
        """Test that a fatal acquisition error is reported."""
        engine.fail_with = lambda: exceptions.permission_denied()

        response = client.post("/api/v1/session/start", json={"engine": "fake"})
        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "SESSION_FAILED"
        assert error["details"]["kind"] == "permission_denied"

        snapshot = client.get("/api/v1/session").json()["session"]
        assert snapshot["state"] == "failed"
        assert snapshot["failure"]["kind"] == "permission_denied"

    def test_stop_is_idempotent(self, client: TestClient):
        """Test stopping twice."""
        client.post("/api/v1/session/start", json={"engine": "fake"})

        first = client.post("/api/v1/session/stop")
        second = client.post("/api/v1/session/stop")

        assert first.status_code == 200
        assert second.status_code == 200
        assert first.json()["session"]["state"] == "idle"
        assert second.json()["session"]["state"] == "idle"

    def test_switch_engine_without_session(self, client: TestClient):
        """Test switching before any start."""
        response = client.post("/api/v1/session/engine", json={"engine": "fake-2"})
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "NO_ACTIVE_SESSION"

    def test_switch_engine(self, client: TestClient, other_engine):
        """Test restarting on another engine."""
        client.post("/api/v1/session/start", json={"engine": "fake"})

        response = client.post("/api/v1/session/engine", json={"engine": "fake-2"})
        assert response.status_code == 200
        assert response.json()["session"]["active_engine"] == "fake-2"
        assert len(other_engine.start_calls) == 1

    def test_switch_device(self, client: TestClient, engine):
        """Test restarting on another camera."""
        client.post("/api/v1/session/start", json={"engine": "fake"})

        response = client.post("/api/v1/session/device", json={"facing": "user"})
        assert response.status_code == 200
        assert response.json()["session"]["state"] == "running"
        assert engine.start_calls[-1].facing.value == "user"


class TestDiscoveryEndpoints:
    """Tests for devices and capabilities."""

    def test_list_devices(self, client: TestClient):
        response = client.get("/api/v1/devices")
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["devices"][0]["device_id"] == "0"
        assert data["devices"][0]["facing"] == "environment"

    def test_device_capabilities(self, client: TestClient):
        response = client.get("/api/v1/devices/0/capabilities")
        assert response.status_code == 200
        capabilities = response.json()["capabilities"]
        assert capabilities["device"]["device_id"] == "0"
        assert capabilities["current"] == {"width": 1280, "height": 720, "fps": 30.0}
        assert capabilities["max_resolution"] == {"width": 1920, "height": 1080}
        assert capabilities["profiles"] == ["low", "standard", "high"]
        assert capabilities["focus_modes"] == ["default", "continuous"]
        assert capabilities["zoom"] is None

    def test_unknown_device_capabilities(self, client: TestClient):
        response = client.get("/api/v1/devices/7/capabilities")
        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "DEVICE_UNAVAILABLE"
        assert error["details"]["kind"] == "device_not_found"

    def test_capabilities(self, client: TestClient):
        response = client.get("/api/v1/capabilities")
        assert response.status_code == 200
        data = response.json()
        assert [p["id"] for p in data["profiles"]] == ["low", "standard", "high", "ultra"]
        assert "macro" in [mode["id"] for mode in data["focus_modes"]]
        assert data["default_engine"] == "fake"


class TestPreferenceEndpoints:
    """Tests for stored preferences."""

    def test_get_empty_preferences(self, client: TestClient):
        response = client.get("/api/v1/preferences")
        assert response.status_code == 200
        assert response.json()["preferences"]["engine"] is None

    def test_saved_preferences_apply_to_start(self, client: TestClient):
        response = client.put(
            "/api/v1/preferences",
            json={"engine": "fake-2", "profile": "low"}
        )
        assert response.status_code == 200
        assert response.json()["preferences"]["profile"] == "low"

        started = client.post("/api/v1/session/start")
        assert started.json()["session"]["active_engine"] == "fake-2"

    def test_invalid_preferences(self, client: TestClient):
        response = client.put("/api/v1/preferences", json={"profile": "gigantic"})
        assert response.status_code == 422


class TestScanWebSocket:
    """Tests for the live scan WebSocket."""

    def test_hello_start_stop(self, client: TestClient):
        with client.websocket_connect("/ws/scan") as websocket:
            hello = websocket.receive_json()
            assert hello["type"] == "hello"
            assert hello["session"]["state"] == "idle"

            websocket.send_json({"type": "start", "engine": "fake"})
            started = receive_until(websocket, "session")
            assert started["session"]["state"] == "running"

            websocket.send_json({"type": "stop"})
            stopped = receive_until(websocket, "session")
            assert stopped["session"]["state"] == "idle"

    def test_start_error_is_reported(self, client: TestClient):
        with client.websocket_connect("/ws/scan") as websocket:
            websocket.receive_json()

            websocket.send_json({"type": "start", "engine": "laser"})
            error = receive_until(websocket, "error")
            assert error["error"]["code"] == "ENGINE_NOT_FOUND"

    def test_unknown_message(self, client: TestClient):
        with client.websocket_connect("/ws/scan") as websocket:
            websocket.receive_json()

            websocket.send_json({"type": "dance"})
            error = websocket.receive_json()
            assert error["error"]["code"] == "UNKNOWN_MESSAGE"

    def test_stop_interrupts_pending_start(self, client: TestClient, engine):
        engine.block_start = asyncio.Event()

        with client.websocket_connect("/ws/scan") as websocket:
            websocket.receive_json()

            started_at = time.monotonic()
            websocket.send_json({"type": "start", "engine": "fake"})
            while True:
                message = receive_until(websocket, "state")
                if message["state"]["new_state"] == "acquiring":
                    break

            websocket.send_json({"type": "stop"})
            sessions = [receive_until(websocket, "session") for _ in range(2)]
            elapsed = time.monotonic() - started_at

        assert [s["session"]["state"] for s in sessions] == ["idle", "idle"]
        assert len(engine.start_calls) == 1
        assert elapsed < 5

    def test_invalid_json_keeps_connection_open(self, client: TestClient):
        with client.websocket_connect("/ws/scan") as websocket:
            websocket.receive_json()

            websocket.send_text("{not json")
            assert websocket.receive_json()["error"]["code"] == "INVALID_MESSAGE"

            websocket.send_json(["start"])
            assert websocket.receive_json()["error"]["code"] == "INVALID_MESSAGE"

            websocket.send_json({"type": "dance"})
            assert websocket.receive_json()["error"]["code"] == "UNKNOWN_MESSAGE"
