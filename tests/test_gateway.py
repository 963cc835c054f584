import json
from unittest.mock import MagicMock, patch

import pytest
import requests
from fastapi.testclient import TestClient
from requests.structures import CaseInsensitiveDict

from core.config import settings
from services.gateway import GatewayService


def upstream_response(status_code=200, body=b"{}", headers=None):
    response = MagicMock()
    response.status_code = status_code
    response.content = body
    response.headers = CaseInsensitiveDict(headers or {"Content-Type": "application/json"})
    return response


@pytest.fixture
def gateway_client():
    from main import app
    return TestClient(app)


def test_put_is_forwarded_unchanged(gateway_client):
    body = {"status": "in_transit"}
    upstream = upstream_response(200, b'{"id": 123, "status": "in_transit"}')

    with patch("services.gateway.requests.request", return_value=upstream) as mocked:
        response = gateway_client.put(
            "/orders/123?notify=1",
            json=body,
            headers={"Authorization": "Bearer abc"}
        )

    method, url = mocked.call_args.args
    kwargs = mocked.call_args.kwargs
    assert method == "PUT"
    assert url == f"{settings.ORDER_SERVICE_URL.rstrip('/')}/orders/123?notify=1"
    assert json.loads(kwargs["data"]) == body
    assert kwargs["headers"]["authorization"] == "Bearer abc"
    assert kwargs["headers"]["x-internal-service"] == "gateway"
    assert "host" not in kwargs["headers"]
    assert kwargs["timeout"] == settings.GATEWAY_TIMEOUT_SECONDS

    assert response.status_code == 200
    assert response.json() == {"id": 123, "status": "in_transit"}


def test_backend_errors_pass_through(gateway_client):
    upstream = upstream_response(409, b'{"message": "User with this email already exists"}')

    with patch("services.gateway.requests.request", return_value=upstream):
        response = gateway_client.post("/auth/register", json={"email": "a@b.c"})

    assert response.status_code == 409
    assert response.json() == {"message": "User with this email already exists"}


def test_hop_by_hop_response_headers_are_dropped(gateway_client):
    upstream = upstream_response(200, b"{}", {
        "Content-Type": "application/json",
        "Content-Encoding": "gzip",
        "Connection": "keep-alive",
        "X-Backend": "orders",
    })

    with patch("services.gateway.requests.request", return_value=upstream):
        response = gateway_client.get("/orders/all")

    assert response.headers["x-backend"] == "orders"
    assert "content-encoding" not in response.headers


@pytest.mark.parametrize("path, service_url", [
    ("/auth/login", "AUTH_SERVICE_URL"),
    ("/users", "USER_SERVICE_URL"),
    ("/geo/route", "GEO_SERVICE_URL"),
    ("/tracking/order/5", "GEO_SERVICE_URL"),
])
def test_prefixes_route_to_their_service(gateway_client, path, service_url):
    with patch("services.gateway.requests.request", return_value=upstream_response()) as mocked:
        gateway_client.get(path)

    url = mocked.call_args.args[1]
    assert url == f"{getattr(settings, service_url).rstrip('/')}{path}"


def test_unreachable_backend_returns_503(gateway_client):
    with patch("services.gateway.requests.request", side_effect=requests.exceptions.ConnectionError("refused")):
        response = gateway_client.get("/orders/all")

    assert response.status_code == 503
    assert response.json() == {"error": "Service unavailable", "message": "Service orders unavailable"}


def test_timeout_returns_503(gateway_client):
    with patch("services.gateway.requests.request", side_effect=requests.exceptions.Timeout()):
        response = gateway_client.get("/geo/health")

    assert response.status_code == 503
    assert response.json()["message"] == "Service geo unavailable"


def test_gateway_health(gateway_client):
    response = gateway_client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "delivery-api-gateway"
    assert "timestamp" in data and "environment" in data


def test_unknown_service_falls_back_to_auth():
    gateway = GatewayService({"auth": "http://auth:3002", "orders": "http://orders:3003"})
    assert gateway.get_service_url("billing") == "http://auth:3002"
    assert gateway.get_service_url("orders") == "http://orders:3003"


def test_caller_is_appended_to_forwarded_for(gateway_client):
    with patch("services.gateway.requests.request", return_value=upstream_response()) as mocked:
        gateway_client.get("/orders/all", headers={"X-Forwarded-For": "203.0.113.7"})

    headers = mocked.call_args.kwargs["headers"]
    assert headers["x-forwarded-for"] == "203.0.113.7, testclient"


def test_request_id_is_forwarded_once(gateway_client):
    with patch("services.gateway.requests.request", return_value=upstream_response()) as mocked:
        gateway_client.get("/orders/all", headers={"X-Request-ID": "req-7", "X-Internal-Service": "spoofed"})

    headers = mocked.call_args.kwargs["headers"]
    assert [k for k in headers if k.lower() == "x-request-id"] == ["x-request-id"]
    assert headers["x-request-id"] == "req-7"
    assert [k for k in headers if k.lower() == "x-internal-service"] == ["x-internal-service"]
    assert headers["x-internal-service"] == "gateway"
