"""
Tests for the root and health endpoints.
"""

from fastapi.testclient import TestClient

from academy.main import app

client = TestClient(app)


def test_root():
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "running"


def test_health():
    assert client.get("/health").json() == {"status": "healthy"}


def test_ready_reports_redis_status():
    body = client.get("/ready").json()

    assert body["status"] == "ready"
    assert body["redis"] in ("connected", "unavailable")
