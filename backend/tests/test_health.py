import logging

from campushub.core.logging import build_logging_config


def test_health_endpoints(client):
    assert client.get("/api/health").json() == {"status": "ok"}

    live = client.get("/api/health/live")
    assert live.status_code == 200
    assert live.json()["status"] == "ok"

    ready = client.get("/api/health/ready")
    assert ready.status_code in {200, 503}
    payload = ready.json()
    assert "database" in payload
    assert payload["reservation_sweep"]["running"] is False
    assert payload["reservation_sweep"]["interval_seconds"] == 300


def test_oversized_request_body_is_rejected(client):
    response = client.post(
        "/api/reservations/",
        content=b"x" * 1_000_001,
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 413
    assert response.json()["code"] == "payload_too_large"


def test_logging_config_uses_requested_level():
    config = build_logging_config("debug")
    assert config["loggers"][""]["level"] == "DEBUG"
    assert config["handlers"]["console"]["level"] == "DEBUG"
    assert config["disable_existing_loggers"] is False
    assert logging.getLogger("campushub").propagate is True
