"""Unit tests for exception handlers."""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from api.exception_handlers import setup_exception_handlers
from core.exceptions import (
    NotificationEventNotFoundError,
    PushSendFailure,
    SubscriptionRegistrationFailure,
)


def _create_test_app() -> FastAPI:
    app = FastAPI()
    setup_exception_handlers(app)
    return app


async def _get(app: FastAPI, path: str):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        return await c.get(path)


class TestExceptionHandlers:
    @pytest.mark.asyncio
    async def test_app_exception_returns_error_code_and_message(self) -> None:
        app = _create_test_app()

        @app.get("/raise-app")
        async def _() -> None:
            raise NotificationEventNotFoundError("evt-1")

        response = await _get(app, "/raise-app")

        assert response.status_code == 404
        body = response.json()
        assert body["error_code"] == "NOTIFICATION_EVENT_NOT_FOUND"
        assert "evt-1" in body["message"]
        assert body["details"]["event_id"] == "evt-1"

    @pytest.mark.asyncio
    async def test_push_failure_reports_provider_status(self) -> None:
        app = _create_test_app()

        @app.get("/raise-push")
        async def _() -> None:
            raise PushSendFailure("https://push.test/abc", reason="gone", status_code=410, gone=True)

        response = await _get(app, "/raise-push")

        assert response.status_code == 502
        body = response.json()
        assert body["error_code"] == "PUSH_SEND_FAILED"
        assert body["details"] == {
            "endpoint": "https://push.test/abc",
            "provider_status": 410,
            "gone": True,
        }

    @pytest.mark.asyncio
    async def test_registration_failure_is_marked_retryable(self) -> None:
        app = _create_test_app()

        @app.get("/raise-registration")
        async def _() -> None:
            raise SubscriptionRegistrationFailure("service worker did not activate")

        response = await _get(app, "/raise-registration")

        assert response.status_code == 502
        body = response.json()
        assert body["error_code"] == "PUSH_REGISTRATION_FAILED"
        assert body["details"]["retryable"] is True

    @pytest.mark.asyncio
    async def test_http_exception_returns_standard_format(self) -> None:
        from starlette.exceptions import HTTPException

        app = _create_test_app()

        @app.get("/raise-http")
        async def _() -> None:
            raise HTTPException(status_code=403, detail="Forbidden")

        response = await _get(app, "/raise-http")

        assert response.status_code == 403
        body = response.json()
        assert body["error_code"] == "HTTP_ERROR"
        assert body["message"] == "Forbidden"

    @pytest.mark.asyncio
    async def test_validation_error_returns_field_details(self) -> None:
        from pydantic import BaseModel, Field

        app = _create_test_app()

        class Body(BaseModel):
            recipient_id: str = Field(..., min_length=1)

        @app.post("/validate")
        async def _(body: Body) -> dict[str, bool]:
            return {"ok": True}

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            response = await c.post("/validate", json={"recipient_id": ""})

        assert response.status_code == 422
        body = response.json()
        assert body["error_code"] == "VALIDATION_ERROR"
        assert body["details"][0]["field"] == "body.recipient_id"

    @pytest.mark.asyncio
    async def test_unhandled_exception_returns_500(self) -> None:
        import json
        from unittest.mock import MagicMock

        app = _create_test_app()

        # Build a fake request with request.state.request_id
        mock_request = MagicMock()
        mock_request.state.request_id = "test-req-id"

        handler = app.exception_handlers.get(Exception)
        assert handler is not None, "Global exception handler not registered"

        response = await handler(mock_request, RuntimeError("Something went wrong"))  # type: ignore[misc]

        assert response.status_code == 500
        body = json.loads(response.body)
        assert body["error_code"] == "INTERNAL_ERROR"
        assert body["details"]["request_id"] == "test-req-id"
