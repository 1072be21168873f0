"""Tests for webhook dispatch: carrier selection and signature gating."""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from smartseller_api.core.errors import PayloadParseError, SignatureInvalidError, UnsupportedCarrierError
from smartseller_api.handlers import JNEHandler, NinjaVanHandler, SiCepatHandler, WebhookDispatcher
from smartseller_api.models.tracking import TrackingState

from conftest import JNE_SECRET, as_body, sign

RECEIVED_AT = datetime(2024, 1, 20, 15, 31, tzinfo=timezone.utc)

JNE_BODY = as_body(
    {
        "airwaybill_number": "JNE123",
        "last_status": "D01",
        "summary_status": "Delivered",
        "last_update_at": "2024-01-20T15:30:00Z",
    }
)


@pytest.fixture
def dispatcher(test_settings):
    return WebhookDispatcher.from_settings(test_settings)


class TestWebhookDispatcher:
    def test_from_settings_wires_every_carrier(self, dispatcher):
        assert isinstance(dispatcher.get_handler("jne"), JNEHandler)
        assert isinstance(dispatcher.get_handler("SiCepat"), SiCepatHandler)
        assert isinstance(dispatcher.get_handler("ninjavan"), NinjaVanHandler)
        assert dispatcher.get_handler("jne").secret == JNE_SECRET

    def test_unsupported_carrier(self, dispatcher):
        with pytest.raises(UnsupportedCarrierError) as exc_info:
            dispatcher.dispatch("pos", JNE_BODY, None)
        assert exc_info.value.status_code == 404

    def test_valid_signature(self, dispatcher):
        updates = dispatcher.dispatch("jne", JNE_BODY, sign(JNE_BODY, JNE_SECRET), RECEIVED_AT)

        assert len(updates) == 1
        assert updates[0].status is TrackingState.DELIVERED
        assert updates[0].metadata["signature"] == "ok"
        assert "in_to_out_latency_seconds" in updates[0].metadata
        assert updates[0].metadata["3pl_to_in_latency_seconds"] == 60.0

    def test_invalid_signature_is_rejected_before_parsing(self, dispatcher):
        handler = dispatcher.get_handler("jne")
        with patch.object(handler, "normalize") as normalize:
            with pytest.raises(SignatureInvalidError):
                dispatcher.dispatch("jne", JNE_BODY, "0" * 64)
        normalize.assert_not_called()

    def test_missing_secret_skips_verification(self):
        dispatcher = WebhookDispatcher({"jne": JNEHandler(secret="")})

        updates = dispatcher.dispatch("jne", JNE_BODY, None, RECEIVED_AT)

        assert updates[0].metadata["signature"] == "skipped"

    def test_handler_errors_propagate(self, dispatcher):
        body = b"{not json"
        with pytest.raises(PayloadParseError):
            dispatcher.dispatch("jne", body, sign(body, JNE_SECRET))
