"""Tests for app-wide middlewares and exception handlers.
Covers: admin-only docs, request ids, error rendering, JSON log formatting.
"""

import json
import logging
import sys

import pytest
from fastapi import FastAPI, status
from httpx import ASGITransport, AsyncClient

from tea_api.config.logging_config import JsonFormatter
from tea_api.shared.middlewares.error_handlers import register_exception_handlers
from tea_api.shared.middlewares.request_logging import RequestLoggingMiddleware


class TestDocsMiddleware:
    @pytest.mark.parametrize("path", ["/docs", "/redoc", "/openapi.json"])
    async def test_anonymous_is_forbidden(self, client, path):
        response = await client.get(path)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["detail"] == "Not authenticated."

    async def test_invalid_token_is_forbidden(self, client):
        response = await client.get("/openapi.json", headers={"Authorization": "Bearer garbage"})

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["detail"] == "Not authenticated."

    async def test_regular_user_is_forbidden(self, client, make_user, auth_headers):
        user = await make_user()

        response = await client.get("/openapi.json", headers=auth_headers(user))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["detail"] == "Insufficient permissions."

    async def test_admin_can_read_schema(self, client, make_user, auth_headers):
        admin = await make_user(is_admin=True)

        response = await client.get("/openapi.json", headers=auth_headers(admin))

        assert response.status_code == status.HTTP_200_OK
        assert "/api/v1/auth/refresh" in response.json()["paths"]


class TestAppRoutes:
    async def test_root(self, client):
        response = await client.get("/")

        assert response.json() == {"message": "Tea API", "status": "running"}

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.json() == {"status": "healthy"}


class TestRequestLogging:
    async def test_request_id_is_generated(self, client):
        response = await client.get("/health")

        assert response.headers["x-request-id"]

    async def test_request_id_is_propagated(self, client):
        response = await client.get("/health", headers={"X-Request-Id": "abc-123"})

        assert response.headers["x-request-id"] == "abc-123"

    async def test_access_log_carries_user_id(self, client, make_user, auth_headers, caplog):
        user = await make_user()

        with caplog.at_level(logging.INFO, logger="tea_api.request"):
            await client.get("/api/v1/users/me", headers=auth_headers(user))

        records = [r for r in caplog.records if r.name == "tea_api.request"]
        assert records
        assert records[-1].user_id == str(user.id)
        assert records[-1].status_code == 200

    async def test_access_log_never_contains_token(self, client, make_user, auth_headers, caplog):
        user = await make_user()
        headers = auth_headers(user)
        token = headers["Authorization"].removeprefix("Bearer ")

        with caplog.at_level(logging.DEBUG):
            await client.get("/api/v1/users/me", headers=headers)

        assert token not in caplog.text


class TestExceptionHandlers:
    @pytest.fixture
    def handler_app(self) -> FastAPI:
        app = FastAPI()
        register_exception_handlers(app)
        app.add_middleware(RequestLoggingMiddleware)

        @app.get("/boom")
        async def boom():
            raise RuntimeError("database exploded")

        @app.get("/items/{item_id}")
        async def item(item_id: int):
            return {"item_id": item_id}

        return app

    async def test_validation_error_is_bad_request(self, handler_app):
        async with AsyncClient(transport=ASGITransport(app=handler_app), base_url="https://test") as ac:
            response = await ac.get("/items/abc")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "Invalid request data"
        assert response.json()["errors"]

    async def test_unhandled_error_is_generic_500(self, handler_app):
        transport = ASGITransport(app=handler_app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="https://test") as ac:
            response = await ac.get("/boom")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json() == {"detail": "Internal server error"}
        assert "database exploded" not in response.text


class TestJsonFormatter:
    def test_formats_extras(self):
        record = logging.LogRecord("tea_api.request", logging.INFO, __file__, 1, "request", None, None)
        record.request_id = "abc"
        record.status_code = 200

        payload = json.loads(JsonFormatter().format(record))

        assert payload["message"] == "request"
        assert payload["level"] == "INFO"
        assert payload["request_id"] == "abc"
        assert payload["status_code"] == 200
        assert "user_id" not in payload

    def test_formats_exceptions(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

        payload = json.loads(JsonFormatter().format(record))

        assert "ValueError: bad" in payload["exception"]
