from unittest.mock import AsyncMock, patch

from userapi.app.api import health


def test_health(client):
    resp = client.get("/api/health")

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["database"]["connected"] is True
    assert "password" not in data["database"]["info"]
    assert data["uptime"] >= 0
    assert data["timestamp"].endswith("Z")


def test_health_degraded_when_database_down(client):
    with patch("userapi.app.api.health.check_connection", AsyncMock(return_value=False)):
        resp = client.get("/api/health")

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "degraded"
    assert data["database"] == {"connected": False}


def test_database_health(client):
    data = client.get("/api/health/database").json()
    assert data["status"] == "connected"
    assert "info" in data

    with patch("userapi.app.api.health.check_connection", AsyncMock(return_value=False)):
        data = client.get("/api/health/database").json()
    assert data["status"] == "disconnected"
    assert "info" not in data


def test_liveness(client):
    resp = client.get("/api/health/live")

    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert "X-RateLimit-Limit" not in resp.headers


def test_readiness_ok(make_client):
    client = make_client(health_memory_rss=1 << 40, health_disk_threshold=1.0)

    resp = client.get("/api/health/ready")

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert set(data["checks"]) == {"database", "memory", "disk"}


def test_readiness_fails_over_memory_threshold(make_client):
    client = make_client(health_memory_rss=1, health_disk_threshold=1.0)

    resp = client.get("/api/health/ready")

    assert resp.status_code == 503
    data = resp.json()
    assert data["status"] == "error"
    assert data["checks"]["memory"]["status"] == "down"


def test_readiness_reports_missing_disk_path(make_client, tmp_path):
    client = make_client(
        health_memory_rss=1 << 40,
        health_disk_path=str(tmp_path / "does-not-exist"),
    )

    resp = client.get("/api/health/ready")

    assert resp.status_code == 503
    assert resp.json()["checks"]["disk"]["status"] == "down"


def test_check_disk_threshold():
    assert health.check_disk("/", 1.0)["status"] == "up"
