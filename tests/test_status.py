"""
Tests for GET /status and GET /door/buzz.
"""

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from relaypanel.config import Settings
from relaypanel.db.clickhouse import DatabaseHealth
from relaypanel.device.manager import BUZZER, RELAYS
from relaypanel.main import create_app

_CFG = Settings(static_dir="/nonexistent-static")


@pytest.fixture
def client(manager):
    app = create_app(_CFG, manager=manager, label_store=MagicMock(), tv_client=MagicMock())
    return TestClient(app)


def test_status_reports_devices_and_relays(client, manager, fake_connection_cls):
    manager.set_device(RELAYS, fake_connection_cls())
    manager.set_labels({1: "lamp"})
    manager.handle_line(RELAYS, "RELAYS:0x01")

    with patch("relaypanel.api.routes.status.ping", return_value=DatabaseHealth(True, 1.23)):
        response = client.get("/status")

    assert response.status_code == 200
    body = response.json()
    assert body["devices"] == [
        {"name": "relays", "state": "connected"},
        {"name": "buzzer", "state": "disconnected"},
    ]
    assert body["relays"][0] == {"label": "lamp", "state": True}
    assert len(body["relays"]) == 8
    assert body["clickhouse"] == {"connected": True, "latency_ms": 1.23}


def test_status_when_clickhouse_down(client):
    with patch("relaypanel.api.routes.status.ping", return_value=DatabaseHealth(False, 500.0)):
        response = client.get("/status")

    assert response.status_code == 200
    assert response.json()["clickhouse"]["connected"] is False


def test_status_before_manager_ready_returns_503():
    app = create_app(_CFG, label_store=MagicMock(), tv_client=MagicMock())
    response = TestClient(app).get("/status")

    assert response.status_code == 503
    assert response.json()["detail"]["status"] == "unavailable"


# ── GET /door/buzz ────────────────────────────────────────────────────────────


def test_buzz_writes_to_buzzer(client, manager, fake_connection_cls):
    buzzer = fake_connection_cls()
    manager.set_device(BUZZER, buzzer)

    response = client.get("/door/buzz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert buzzer.written == [b"1"]


def test_buzz_disconnected_returns_503(client):
    response = client.get("/door/buzz")

    assert response.status_code == 503
    assert "buzzer not connected" in response.json()["detail"]["message"]
