"""Tests for SiCepat webhook normalization and replay preparation."""

import json
import logging
from datetime import datetime, timezone

import pytest

from smartseller_api.core.errors import MissingTrackingNumberError
from smartseller_api.handlers.sicepat import SiCepatHandler, normalize_sicepat_status
from smartseller_api.models.tracking import TrackingState

from conftest import as_body

RECEIVED_AT = datetime(2024, 1, 20, 6, 0, tzinfo=timezone.utc)


@pytest.fixture
def handler():
    return SiCepatHandler(secret="sicepat-secret")


def history(position, status, note, time):
    return {"position": position, "status": status, "note": note, "time": time}


class TestNormalizeSiCepatStatus:
    @pytest.mark.parametrize(
        "summary, last, expected",
        [
            ("Picked up", "", TrackingState.PICKED_UP),
            ("On Process", "Shipment in transit", TrackingState.IN_TRANSIT),
            ("Delivering", "With courier", TrackingState.OUT_FOR_DELIVERY),
            ("Delivered", "POD received", TrackingState.DELIVERED),
            ("Delivered", "Unsuccessful delivery", TrackingState.DELIVERY_FAILED),
            ("Return", "on the way back", TrackingState.RETURNING),
            ("Return", "complete", TrackingState.RETURNED),
            ("Returned", "", TrackingState.RETURNED),
            ("Cancelled", "", TrackingState.EXCEPTION),
            ("", "", TrackingState.UNKNOWN),
        ],
    )
    def test_mapping(self, summary, last, expected):
        assert normalize_sicepat_status(summary, last) is expected


class TestSiCepatHandler:
    def test_midnight_history_entry_is_omitted(self, handler, caplog):
        body = as_body(
            {
                "airwaybill_number": "SCP001",
                "summary_status": "On Process",
                "last_status": "Shipment in transit",
                "shipment_histories": [
                    history("Jakarta Hub", "IN", "Paket diterima di hub", "2024-01-20T00:00:00+07:00"),
                    history("Bandung Gateway", "OUT", "Paket dalam transit", "2024-01-20T12:00:00+07:00"),
                ],
            }
        )

        with caplog.at_level(logging.INFO):
            updates = handler.normalize(body, RECEIVED_AT)

        assert len(updates) == 1
        update = updates[0]
        assert update.location == "Bandung Gateway - Paket dalam transit"
        assert update.status is TrackingState.IN_TRANSIT
        assert update.timestamp == datetime(2024, 1, 20, 5, 0, tzinfo=timezone.utc)
        assert update.metadata["history_index"] == 1

        omitted = [r for r in caplog.records if getattr(r, "event", None) == "omitting_zero_time_event"]
        assert len(omitted) == 1
        assert omitted[0].tracking_number == "SCP001"

    def test_histories_are_emitted_in_carrier_order(self, handler):
        body = as_body(
            {
                "airwaybill_number": "SCP002",
                "summary_status": "Delivered",
                "shipment_histories": [
                    history("Jakarta", "Picked up", "", "2024-01-19T09:00:00+07:00"),
                    history("Bandung", "Out for delivery", "", "2024-01-20T08:00:00+07:00"),
                    history("Bandung", "Delivered", "Diterima oleh Ani", "2024-01-20T11:00:00+07:00"),
                ],
            }
        )

        updates = handler.normalize(body, RECEIVED_AT)

        assert [u.status for u in updates] == [
            TrackingState.PICKED_UP,
            TrackingState.OUT_FOR_DELIVERY,
            TrackingState.DELIVERED,
        ]
        assert updates[-1].metadata["3pl_to_in_latency_seconds"] == 7200.0

    def test_unmapped_entries_inherit_summary_state(self, handler):
        body = as_body(
            {
                "airwaybill_number": "SCP003",
                "summary_status": "Delivered",
                "shipment_histories": [
                    history("Jakarta", "IN", "", "2024-01-19T09:00:00+07:00"),
                    history("Bandung", "XYZ", "", "2024-01-20T11:00:00+07:00"),
                ],
            }
        )

        updates = handler.normalize(body, RECEIVED_AT)

        assert [u.status for u in updates] == [TrackingState.DELIVERED, TrackingState.DELIVERED]
        assert [u.metadata["history_status"] for u in updates] == ["IN", "XYZ"]
        assert updates[1].status_text == "XYZ"
        assert not any(u.metadata.get("unknown_status") for u in updates)

    def test_empty_histories_use_last_update_at(self, handler):
        body = as_body(
            {
                "airwaybill_number": "SCP004",
                "summary_status": "Delivered",
                "last_update_at": "2024-01-20T04:30:00Z",
                "shipment_histories": [],
            }
        )

        (update,) = handler.normalize(body, RECEIVED_AT)

        assert update.status is TrackingState.DELIVERED
        assert update.timestamp == datetime(2024, 1, 20, 4, 30, tzinfo=timezone.utc)
        assert update.metadata["timestamp_source"] == "last_update_at"
        assert update.metadata["3pl_to_in_latency_seconds"] == 5400.0

    def test_missing_airwaybill_number(self, handler):
        with pytest.raises(MissingTrackingNumberError):
            handler.normalize(as_body({"summary_status": "Delivered"}), RECEIVED_AT)


class TestReplayPayload:
    def test_shipper_address_kept_after_manifest_scan(self, handler):
        body = as_body(
            {
                "airwaybill_number": "SCP010",
                "shipper_address": "Jl. Merdeka 1",
                "time_received": 1705730400.0,
                "shipment_histories": [history("Manifested at Jakarta", "IN", "", "2024-01-20T09:00:00+07:00")],
            }
        )

        shipping = handler.parse_replay_payload(body)

        assert shipping.shipper_address == "Jl. Merdeka 1"
        assert shipping.sent_at.endswith("Z")

    @pytest.mark.parametrize(
        "histories",
        [
            [],
            [history("Manifested at Jakarta", "OUT", "", "2024-01-20T09:00:00+07:00")],
            [history("Jakarta Hub", "IN", "", "2024-01-20T09:00:00+07:00")],
        ],
    )
    def test_shipper_address_blanked_otherwise(self, handler, histories):
        body = as_body(
            {"airwaybill_number": "SCP011", "shipper_address": "Jl. Merdeka 1", "shipment_histories": histories}
        )

        shipping = handler.parse_replay_payload(body)

        assert shipping.shipper_address == ""
        assert json.loads(handler.replay_body(shipping))["shipper_address"] == ""

    def test_normalize_keeps_shipper_address(self, handler):
        body = as_body(
            {
                "airwaybill_number": "SCP012",
                "shipper_address": "Jl. Merdeka 1",
                "summary_status": "Picked up",
                "last_update_at": "2024-01-20T04:30:00Z",
            }
        )

        (update,) = handler.normalize(body, RECEIVED_AT)

        assert update.metadata["shipper_address"] == "Jl. Merdeka 1"
