import pytest
from fastapi.testclient import TestClient


@pytest.mark.parametrize("module, service", [
    ("auth_main", "auth-service"),
    ("order_main", "order-service"),
    ("geo_main", "geo-service"),
    ("full_main", "delivery-backend"),
])
def test_service_health(module, service):
    app = __import__(module).app
    response = TestClient(app).get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == service
    assert set(data) >= {"status", "timestamp", "service", "environment"}


@pytest.mark.parametrize("path, service", [
    ("/auth/health", "auth-service"),
    ("/users/health", "user-service"),
    ("/orders/health", "order-service"),
    ("/geo/health", "geo-service"),
    ("/tracking/health", "tracking-service"),
])
def test_router_health(client, path, service):
    response = client.get(path)
    assert response.status_code == 200
    assert response.json()["service"] == service


def test_security_headers_and_request_id(client):
    response = client.get("/health", headers={"X-Request-ID": "req-42"})

    assert response.headers["X-Request-ID"] == "req-42"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert "X-Process-Time" in response.headers
