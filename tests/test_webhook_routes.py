"""HTTP-level tests for the webhook and health endpoints."""

import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import pytest_asyncio

from smartseller_api.integrations.forwarder import TrackingForwarder
from smartseller_api.server.app import create_app

from conftest import JNE_SECRET, NINJAVAN_SECRET, SICEPAT_SECRET, as_body, sign

JNE_BODY = as_body(
    {
        "airwaybill_number": "JNE123",
        "last_status": "D01",
        "summary_status": "Delivered",
        "last_update_at": "2024-01-20T15:30:00Z",
    }
)


@pytest_asyncio.fixture
async def client(test_settings):
    app = create_app(test_settings)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestWebhookEndpoint:
    @pytest.mark.asyncio
    async def test_signed_jne_webhook(self, client):
        response = await client.post(
            "/webhooks/jne", content=JNE_BODY, headers={"JNE-Signature": sign(JNE_BODY, JNE_SECRET)}
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "error_message": "", "updates": 1}

    @pytest.mark.asyncio
    async def test_generic_signature_header(self, client):
        body = as_body({"status": "DELIVERED", "orders": [{"tracking_id": "A"}, {"order_id": "B"}]})

        response = await client.post(
            "/webhooks/ninjavan", content=body, headers={"X-Signature": sign(body, NINJAVAN_SECRET)}
        )

        assert response.status_code == 200
        assert response.json()["updates"] == 2

    @pytest.mark.asyncio
    async def test_bad_signature_is_401(self, client):
        response = await client.post("/webhooks/jne", content=JNE_BODY, headers={"X-Signature": "deadbeef"})

        assert response.status_code == 401
        assert response.json() == {"success": False, "error_message": "unauthorized"}

    @pytest.mark.asyncio
    async def test_missing_signature_is_401(self, client):
        response = await client.post("/webhooks/sicepat", content=JNE_BODY)
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_missing_tracking_number_is_400(self, client):
        body = as_body({"summary_status": "Delivered"})

        response = await client.post(
            "/webhooks/sicepat", content=body, headers={"SiCepat-Signature": sign(body, SICEPAT_SECRET)}
        )

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert "airwaybill_number" in response.json()["error_message"]

    @pytest.mark.asyncio
    async def test_unparseable_body_is_400(self, client):
        body = b"<xml/>"
        response = await client.post("/webhooks/jne", content=body, headers={"X-Signature": sign(body, JNE_SECRET)})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_carrier_is_404(self, client):
        response = await client.post("/webhooks/pos", content=JNE_BODY)

        assert response.status_code == 404
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_unexpected_error_is_500(self, client):
        with patch(
            "smartseller_api.handlers.dispatcher.WebhookDispatcher.dispatch", side_effect=RuntimeError("boom")
        ):
            response = await client.post("/webhooks/jne", content=JNE_BODY)

        assert response.status_code == 500
        assert response.json() == {"success": False, "error_message": "internal error"}

    @pytest.mark.asyncio
    async def test_updates_are_forwarded_when_enabled(self, test_settings):
        test_settings.forward_tracking_url = "http://sink.test/tracking"
        app = create_app(test_settings)

        with patch.object(TrackingForwarder, "forward_updates", new_callable=AsyncMock) as forward:
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
                response = await ac.post(
                    "/webhooks/jne", content=JNE_BODY, headers={"X-Signature": sign(JNE_BODY, JNE_SECRET)}
                )
                await asyncio.sleep(0)

        assert response.status_code == 200
        forward.assert_called_once()
        courier, updates = forward.call_args.args
        assert courier == "jne"
        assert updates[0].tracking_number == "JNE123"


class TestHealthEndpoints:
    @pytest.mark.asyncio
    async def test_health_without_database(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["checks"]["database"] == "disabled"

    @pytest.mark.asyncio
    async def test_pool_stats_without_database_is_503(self, client):
        response = await client.get("/health/db/stats")
        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_root_lists_carriers(self, client):
        response = await client.get("/")
        assert response.json()["endpoints"]["carriers"] == ["jne", "sicepat", "ninjavan"]
