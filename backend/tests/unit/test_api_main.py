"""Tests for FastAPI application and exception handlers.

REST API with consistent error handling.
"""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pydantic import BaseModel
from sqlalchemy.exc import OperationalError

from app.core.errors import StorageUnavailableError, TokenExpiredError, ValidationError
from app.main import create_app


class _Body(BaseModel):
    name: str


@pytest.fixture
def app() -> FastAPI:
    """Create test application instance with routes that raise."""
    app = create_app()

    @app.get("/raise/token-expired")
    async def raise_token_expired() -> None:
        raise TokenExpiredError()

    @app.get("/raise/validation")
    async def raise_validation() -> None:
        raise ValidationError(
            "Request validation failed",
            details=[{"field": "name", "message": "must not be empty"}],
        )

    @app.get("/raise/storage")
    async def raise_storage() -> None:
        raise StorageUnavailableError(retry_after_seconds=7)

    @app.get("/raise/operational")
    async def raise_operational() -> None:
        raise OperationalError(
            "SELECT 1", {}, Exception("could not connect to server at 10.0.0.5")
        )

    @app.get("/raise/unhandled")
    async def raise_unhandled() -> None:
        raise RuntimeError("secret internals")

    @app.post("/echo")
    async def echo(body: _Body) -> dict:
        return {"name": body.name}

    return app


@pytest.fixture
async def client(app: FastAPI):
    """Create async HTTP client for testing."""
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestHealthEndpoint:
    """Tests for health check endpoint."""

    async def test_health_returns_healthy_status(self, client):
        """Health endpoint should return 200 and healthy status."""
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestAPIVersioning:
    """Tests for API versioning."""

    async def test_v1_router_mounted(self, client):
        """Unknown v1 paths are plain 404s."""
        response = await client.get("/api/v1/nonexistent")
        assert response.status_code == 404


class TestExceptionHandlers:
    """Custom exceptions become error envelopes."""

    async def test_api_error_envelope(self, client):
        """APIError subclasses keep their status and code."""
        response = await client.get("/raise/token-expired")
        assert response.status_code == 410
        assert response.json()["error"]["code"] == "TOKEN_EXPIRED"

    async def test_validation_error_carries_field_details(self, client):
        """Field errors are returned as details."""
        response = await client.get("/raise/validation")
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"] == [{"field": "name", "message": "must not be empty"}]

    async def test_request_body_errors_are_400(self, client):
        """Pydantic validation failures use the same envelope."""
        response = await client.post("/echo", json={})
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"][0]["loc"] == ["body", "name"]

    async def test_storage_unavailable_sets_retry_after(self, client):
        """503 tells the client when to retry."""
        response = await client.get("/raise/storage")
        assert response.status_code == 503
        assert response.headers["Retry-After"] == "7"
        assert response.json()["error"]["code"] == "STORAGE_UNAVAILABLE"

    async def test_driver_errors_become_opaque_503(self, client):
        """Connection failures never leak driver details."""
        response = await client.get("/raise/operational")
        assert response.status_code == 503
        assert response.headers["Retry-After"] == "5"
        assert "10.0.0.5" not in response.text

    async def test_unhandled_errors_are_opaque_500(self, client):
        """Stack traces and messages stay on the server."""
        response = await client.get("/raise/unhandled")
        assert response.status_code == 500
        assert response.json()["error"]["code"] == "INTERNAL_ERROR"
        assert "secret internals" not in response.text


class TestSecurityHeadersMiddleware:
    """Security headers on every response."""

    async def test_api_responses_are_not_cached(self, client):
        """Responses carrying credentials must not be cached."""
        response = await client.get("/api/v1/nonexistent")
        assert response.headers["Cache-Control"] == "no-store, max-age=0"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    async def test_default_referrer_policy(self, client):
        """Endpoints without their own policy get the default."""
        response = await client.get("/health")
        assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
