# tests/services/test_app.py
"""
Тесты для FastAPI приложения трекинга (HTTP и WebSocket).
"""

from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient

from src.config.loader import TrackingSettings
from src.services.bike_tracking.app import create_app


START = {"lat": -23.55, "lng": -46.63}
DESTINATION = {"lat": -23.551, "lng": -46.631}


@pytest.fixture
def client():
    """Клиент с практически остановленными воркерами (один тик при старте)."""
    app = create_app(
        TrackingSettings(SIMULATION_INTERVAL=3600, BROADCAST_INTERVAL=3600),
        ws_path="/ws",
    )
    with TestClient(app) as test_client:
        yield test_client


class TestHttpEndpoints:
    """Тесты REST эндпоинтов."""

    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "bike_tracking"

    def test_stats_initially_empty(self, client: TestClient) -> None:
        response = client.get("/stats")

        assert response.status_code == 200
        data = response.json()
        assert data["active_connections"] == 0
        assert data["tracked_bikes"] == 0
        assert data["moving_bikes"] == 0


class TestWebSocket:
    """Тесты WebSocket протокола через TestClient."""

    def test_tracking_session(self, client: TestClient) -> None:
        """auth → start → set_destination → новое соединение видит велосипед."""
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "auth", "userId": 7})
            assert ws.receive_json() == {"type": "auth_success", "userId": 7}
            assert ws.receive_json() == {"type": "tracking_data", "bikes": []}

            ws.send_json({"type": "start_tracking", "bikeId": 42, "rentalId": 9, "startLocation": START})
            assert ws.receive_json() == {"type": "tracking_started", "bikeId": 42}

            ws.send_json({"type": "set_destination", "bikeId": 42, "destination": DESTINATION})
            assert ws.receive_json() == {"type": "destination_set", "bikeId": 42, "destination": DESTINATION}

            with client.websocket_connect("/ws") as second:
                second.send_json({"type": "auth", "userId": 7})
                assert second.receive_json()["type"] == "auth_success"
                bikes = second.receive_json()["bikes"]
                assert [b["bikeId"] for b in bikes] == [42]
                assert bikes[0]["isMoving"] is True
                assert bikes[0]["destination"] == DESTINATION

            stats = client.get("/stats").json()
            assert stats["tracked_bikes"] == 1
            assert stats["moving_bikes"] == 1

    def test_unauthenticated_command(self, client: TestClient) -> None:
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "stop_tracking", "bikeId": 42})
            assert ws.receive_json() == {"type": "error", "message": "Not authenticated"}

    def test_malformed_message_keeps_connection(self, client: TestClient) -> None:
        """Некорректный JSON отбрасывается, соединение продолжает работать."""
        with client.websocket_connect("/ws") as ws:
            ws.send_text("{not json")
            ws.send_json({"type": "teleport"})
            ws.send_json({"type": "auth", "userId": 7})
            assert ws.receive_json() == {"type": "auth_success", "userId": 7}

    def test_disconnect_unregisters(self, client: TestClient) -> None:
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "auth", "userId": 7})
            ws.receive_json()
            ws.receive_json()
            assert client.get("/stats").json()["active_connections"] == 1

        # Серверная сторона закрывается в фоне
        for _ in range(50):
            if client.get("/stats").json()["active_connections"] == 0:
                break
            time.sleep(0.02)
        assert client.get("/stats").json()["active_connections"] == 0
