"""Tests for timestamp parsing, event-time selection, and latency gauges."""

from datetime import datetime, timedelta, timezone

import pytest

from smartseller_api.core.latency import annotate_carrier_latency, annotate_egress_latency
from smartseller_api.core.timestamps import (
    format_iso,
    is_midnight_placeholder,
    parse_timestamp,
    pick_event_time,
    to_utc,
)
from smartseller_api.models.tracking import TrackingState, TrackingUpdate

WIB = timezone(timedelta(hours=7))


class TestParseTimestamp:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("2024-01-20T15:30:00Z", datetime(2024, 1, 20, 15, 30, tzinfo=timezone.utc)),
            ("2024-01-20T15:30:00.000Z", datetime(2024, 1, 20, 15, 30, tzinfo=timezone.utc)),
            ("2024-01-20 15:30:00", datetime(2024, 1, 20, 15, 30, tzinfo=timezone.utc)),
            ("2024-01-20T22:30:00+07:00", datetime(2024, 1, 20, 15, 30, tzinfo=timezone.utc)),
        ],
    )
    def test_accepted_layouts_resolve_to_the_same_instant(self, raw, expected):
        assert to_utc(parse_timestamp(raw)) == expected

    def test_offset_is_preserved_for_wall_clock_checks(self):
        parsed = parse_timestamp("2024-01-20T00:00:00+07:00")
        assert parsed.utcoffset() == timedelta(hours=7)
        assert is_midnight_placeholder(parsed)
        assert not is_midnight_placeholder(to_utc(parsed))

    @pytest.mark.parametrize("raw", [None, "", "   ", "yesterday", "20/01/2024"])
    def test_unparseable_values_return_none(self, raw):
        assert parse_timestamp(raw) is None


class TestPickEventTime:
    def test_first_parseable_candidate_wins(self):
        value, source = pick_event_time(
            [("last_update_at", ""), ("event_date_time", "2024-01-20 15:30:00"), ("timestamp", "2024-01-21T00:00:00Z")]
        )
        assert source == "event_date_time"
        assert value == datetime(2024, 1, 20, 15, 30, tzinfo=timezone.utc)

    def test_falls_back_to_ingress_time(self):
        now = datetime(2024, 2, 1, 8, 0, 1, tzinfo=timezone.utc)
        value, source = pick_event_time([("timestamp", None)], now=now)
        assert (value, source) == (now, "ingress")

    def test_format_iso_uses_z_suffix(self):
        assert format_iso(datetime(2024, 1, 20, 22, 30, tzinfo=WIB)) == "2024-01-20T15:30:00Z"


def _update() -> TrackingUpdate:
    return TrackingUpdate(
        tracking_number="AWB1",
        courier_code="jne",
        status=TrackingState.IN_TRANSIT,
        timestamp=datetime(2024, 1, 20, tzinfo=timezone.utc),
    )


class TestLatency:
    def test_carrier_latency_attached_to_every_update(self):
        updates = [_update(), _update()]
        received = datetime(2024, 1, 20, 15, 31, tzinfo=timezone.utc)
        carrier = datetime(2024, 1, 20, 15, 30, tzinfo=timezone.utc)

        latency = annotate_carrier_latency(updates, "jne", received, carrier)

        assert latency == 60.0
        for update in updates:
            assert update.metadata["3pl_to_in_latency_seconds"] == 60.0
            assert "3pl_to_in_latency_invalid" not in update.metadata

    def test_negative_latency_is_kept_and_flagged(self):
        updates = [_update()]
        received = datetime(2024, 1, 20, 15, 30, tzinfo=timezone.utc)
        carrier = received + timedelta(seconds=1)

        annotate_carrier_latency(updates, "jne", received, carrier)

        assert updates[0].metadata["3pl_to_in_latency_seconds"] == -1.0
        assert updates[0].metadata["3pl_to_in_latency_invalid"] is True

    def test_unparsed_carrier_time_adds_no_gauge(self):
        updates = [_update()]
        assert annotate_carrier_latency(updates, "jne", datetime.now(timezone.utc), None) is None
        assert "3pl_to_in_latency_seconds" not in updates[0].metadata

    def test_egress_latency(self):
        updates = [_update()]
        received = datetime(2024, 1, 20, 15, 30, tzinfo=timezone.utc)
        annotate_egress_latency(updates, "jne", received, received + timedelta(milliseconds=250))
        assert updates[0].metadata["in_to_out_latency_seconds"] == 0.25
