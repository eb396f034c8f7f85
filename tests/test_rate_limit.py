"""Tests for rate limiting middleware."""

import json
from unittest.mock import MagicMock

import pytest
from fastapi import Request
from fastapi.testclient import TestClient

from exam_parser.main import app
from exam_parser.middleware.rate_limit import (
    get_client_ip,
    get_limiter,
    parse_rate_limit,
    rate_limit_exceeded_handler,
)


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> None:
    """Reset the rate limiter before each test."""
    get_limiter().reset()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def make_request(host: str, headers: dict) -> MagicMock:
    mock_request = MagicMock(spec=Request)
    mock_request.headers = headers
    mock_request.client.host = host
    return mock_request


# Client IP Detection Tests


def test_get_client_ip_direct() -> None:
    assert get_client_ip(make_request("192.168.1.100", {})) == "192.168.1.100"


def test_get_client_ip_ignores_forwarded_for_from_untrusted_peer() -> None:
    request = make_request("192.168.1.100", {"X-Forwarded-For": "10.0.0.1"})

    assert get_client_ip(request) == "192.168.1.100"


def test_get_client_ip_trusted_proxy(monkeypatch) -> None:
    monkeypatch.setenv("TRUSTED_PROXIES", "172.16.0.1, 172.16.0.2")
    request = make_request("172.16.0.2", {"X-Forwarded-For": "  10.0.0.1  ,  192.168.1.1  "})

    assert get_client_ip(request) == "10.0.0.1"


def test_get_client_ip_trusted_proxy_without_header(monkeypatch) -> None:
    monkeypatch.setenv("TRUSTED_PROXIES", "172.16.0.1")

    assert get_client_ip(make_request("172.16.0.1", {})) == "172.16.0.1"


# Rate Limit Configuration Tests


def test_parse_rate_limit_default() -> None:
    assert parse_rate_limit() == "10/minute"


def test_parse_rate_limit_from_env(monkeypatch) -> None:
    monkeypatch.setenv("PARSE_RATE_LIMIT", "3/hour")

    assert parse_rate_limit() == "3/hour"


# Rate Limit Exceeded Handler Tests


def test_rate_limit_exceeded_handler() -> None:
    mock_request = MagicMock(spec=Request)

    # The real exception requires a Limit object
    mock_exc = MagicMock()
    mock_exc.retry_after = 45
    mock_exc.detail = "10 per 1 minute"

    response = rate_limit_exceeded_handler(mock_request, mock_exc)

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "45"
    assert response.headers["X-RateLimit-Remaining"] == "0"
    assert response.headers["X-RateLimit-Limit"] == "10 per 1 minute"

    body = json.loads(response.body.decode())
    assert body["detail"] == "Rate limit exceeded"
    assert body["retry_after"] == 45
    assert "45 seconds" in body["message"]


def test_rate_limit_exceeded_handler_default_retry() -> None:
    mock_request = MagicMock(spec=Request)

    mock_exc = MagicMock(spec=[])
    mock_exc.detail = "10 per 1 minute"

    response = rate_limit_exceeded_handler(mock_request, mock_exc)

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "60"


# Unlimited Endpoints


def test_health_endpoint_no_rate_limit(client: TestClient) -> None:
    for _ in range(20):
        response = client.get("/health")
        assert response.status_code in [200, 503]


def test_version_endpoint_no_rate_limit(client: TestClient) -> None:
    for _ in range(20):
        assert client.get("/version").status_code == 200
