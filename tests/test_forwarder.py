"""Tests for forwarding tracking updates to the tracking sink."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from smartseller_api.integrations.forwarder import TrackingForwarder
from smartseller_api.models.tracking import TrackingState, TrackingUpdate

SINK_URL = "http://sink.test/tracking"


def make_update(tracking_number="AWB1", status=TrackingState.IN_TRANSIT, hour=10) -> TrackingUpdate:
    return TrackingUpdate(
        tracking_number=tracking_number,
        courier_code="sicepat",
        status=status,
        timestamp=datetime(2024, 1, 20, hour, tzinfo=timezone.utc),
        metadata={"source": "sicepat_webhook"},
    )


def sink_response(status_code: int) -> httpx.Response:
    return httpx.Response(status_code, request=httpx.Request("POST", SINK_URL))


class TestBuildPayload:
    def test_keeps_order_and_drops_repeated_keys(self):
        updates = [
            make_update(hour=9),
            make_update(hour=10),
            make_update(hour=9),
            make_update(hour=11, status=TrackingState.DELIVERED),
        ]

        payload = TrackingForwarder.build_payload("sicepat", updates)

        assert payload["courier"] == "sicepat"
        assert [item["timestamp"] for item in payload["updates"]] == [
            "2024-01-20T09:00:00Z",
            "2024-01-20T10:00:00Z",
            "2024-01-20T11:00:00Z",
        ]
        assert payload["updates"][-1]["status"] == "delivered"


class TestForwardUpdates:
    @pytest.mark.asyncio
    async def test_disabled_without_url(self):
        forwarder = TrackingForwarder(None)
        assert forwarder.enabled is False
        assert await forwarder.forward_updates("jne", [make_update()]) is False

    @pytest.mark.asyncio
    async def test_posts_one_batch(self):
        forwarder = TrackingForwarder(SINK_URL)

        with patch.object(httpx.AsyncClient, "post", new_callable=AsyncMock) as post:
            post.return_value = sink_response(202)
            assert await forwarder.forward_updates("sicepat", [make_update(), make_update("AWB2")]) is True

        post.assert_awaited_once()
        assert post.call_args.args[0] == SINK_URL
        assert len(post.call_args.kwargs["json"]["updates"]) == 2

    @pytest.mark.asyncio
    async def test_sink_error_returns_false(self):
        forwarder = TrackingForwarder(SINK_URL)

        with patch.object(httpx.AsyncClient, "post", new_callable=AsyncMock) as post:
            post.return_value = sink_response(500)
            assert await forwarder.forward_updates("sicepat", [make_update()]) is False

    @pytest.mark.asyncio
    async def test_timeout_returns_false(self):
        forwarder = TrackingForwarder(SINK_URL, timeout=0.1)

        with patch.object(httpx.AsyncClient, "post", new_callable=AsyncMock) as post:
            post.side_effect = httpx.ReadTimeout("too slow")
            assert await forwarder.forward_updates("sicepat", [make_update()]) is False

    @pytest.mark.asyncio
    async def test_empty_batch_is_a_no_op(self):
        forwarder = TrackingForwarder(SINK_URL)

        with patch.object(httpx.AsyncClient, "post", new_callable=AsyncMock) as post:
            assert await forwarder.forward_updates("sicepat", []) is True

        post.assert_not_called()
