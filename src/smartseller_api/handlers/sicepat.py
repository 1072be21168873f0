"""SiCepat webhook normalizer.

A SiCepat webhook carries the parcel summary plus its ``shipment_histories``.
Each history entry becomes one update, in the order SiCepat sent them.
"""

import json
import re
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from smartseller_api.config.constants import COURIER_SICEPAT
from smartseller_api.core.errors import MissingTrackingNumberError
from smartseller_api.core.latency import annotate_egress_latency
from smartseller_api.core.logger import setup_logger
from smartseller_api.core.timestamps import parse_timestamp, pick_event_time, utcnow
from smartseller_api.handlers.base import CarrierHandler, TextRule, match_text
from smartseller_api.models.carriers import SiCepatShipmentHistory, SiCepatWebhook
from smartseller_api.models.tracking import TrackingState, TrackingUpdate

logger = setup_logger(__name__)

S = TrackingState

MANIFESTED_PATTERN = re.compile("manifested")

TEXT_RULES = (
    TextRule(("booking", "created", "new", "pending"), S.PICKUP_PENDING),
    TextRule(("pickup", "picked", "manifest", "collected"), S.PICKED_UP),
    TextRule(("transit", "processing", "sorting", "shipment"), S.IN_TRANSIT),
    TextRule(("delivering", "out for delivery", "with courier", "on delivery"), S.OUT_FOR_DELIVERY),
    TextRule(
        ("delivered", "pod", "success", "complete"),
        S.DELIVERED,
        unless=("unsuccessful", "return"),
    ),
    TextRule(("failed", "unsuccessful", "problem", "exception"), S.DELIVERY_FAILED),
    TextRule(("returned",), S.RETURNED),
    TextRule(("returning", "return"), S.RETURNING),
    TextRule(("cancelled", "cancel", "void"), S.EXCEPTION),
)


def normalize_sicepat_status(summary_status: Optional[str], last_status: Optional[str]) -> TrackingState:
    """Map ``summary_status + " " + last_status`` to a canonical state."""
    text = f"{summary_status or ''} {last_status or ''}"
    return map_sicepat_text(text)


def map_sicepat_text(text: str) -> TrackingState:
    state = match_text(text, TEXT_RULES)
    # a completed return is final
    if state is S.RETURNING and "complete" in text.lower():
        return S.RETURNED
    return state


def history_location(entry: SiCepatShipmentHistory) -> str:
    """``position - note`` for a history entry."""
    position = (entry.position or "").strip()
    note = (entry.note or "").strip()
    if position and note:
        return f"{position} - {note}"
    return position or note


class SiCepatHandler(CarrierHandler):
    """Normalizer for SiCepat webhooks."""

    courier_code = COURIER_SICEPAT
    payload_model = SiCepatWebhook

    def build_updates(
        self, payload: SiCepatWebhook, received_at: datetime
    ) -> Tuple[List[TrackingUpdate], Optional[datetime]]:
        tracking_number = payload.get_tracking_number()
        if not tracking_number:
            logger.warning("SiCepat webhook without airwaybill_number")
            raise MissingTrackingNumberError("missing airwaybill_number in SiCepat webhook")

        histories = payload.get_histories()
        summary_state = normalize_sicepat_status(payload.summary_status, payload.last_status)
        summary_text = payload.get_status_text()
        base_metadata = self._payload_metadata(payload)

        # 3PL latency follows the newest history entry, else last_update_at
        if histories:
            carrier_time = parse_timestamp(histories[-1].time)
        else:
            carrier_time = parse_timestamp(payload.last_update_at)

        updates = []
        if not histories:
            event_time, source = pick_event_time(
                [("last_update_at", payload.last_update_at)], now=received_at
            )
            updates.append(
                self.make_update(
                    tracking_number=tracking_number,
                    status=summary_state,
                    status_text=summary_text,
                    location="",
                    timestamp=event_time,
                    timestamp_source=source,
                    metadata=base_metadata,
                )
            )

        for index, entry in enumerate(histories):
            state = map_sicepat_text(f"{entry.status or ''} {entry.note or ''}")
            # Scan codes such as IN/OUT carry no state of their own.
            if state is S.UNKNOWN:
                state = summary_state

            event_time, source = pick_event_time(
                [("history_time", entry.time), ("last_update_at", payload.last_update_at)],
                now=received_at,
            )
            metadata = dict(base_metadata)
            metadata.update(
                {
                    "history_index": index,
                    "history_status": entry.status,
                    "history_position": entry.position,
                    "history_note": entry.note,
                }
            )
            updates.append(
                self.make_update(
                    tracking_number=tracking_number,
                    status=state,
                    status_text=(entry.status or "").strip() or summary_text,
                    location=history_location(entry),
                    timestamp=event_time,
                    timestamp_source=source,
                    metadata=metadata,
                )
            )

        logger.info(
            "SiCepat webhook processed",
            extra={
                "event": "sicepat_webhook_processed",
                "tracking_number": tracking_number,
                "status": summary_state.value,
                "summary_status": payload.summary_status,
                "last_status": payload.last_status,
                "history_count": len(histories),
            },
        )
        return updates, carrier_time

    def _payload_metadata(self, payload: SiCepatWebhook) -> dict:
        driver = payload.courier_driver
        return {
            "original_status": payload.last_status or payload.summary_status,
            "courier_name": payload.courier_name,
            "courier_service": payload.courier_service,
            "courier_driver_id": driver.id if driver else None,
            "courier_driver_name": driver.name if driver else None,
            "courier_driver_phone": driver.phone if driver else None,
            "actual_shipping_fee": payload.actual_shipping_fee,
            "actual_weight": payload.actual_weight,
            "shipment_date": payload.shipment_date,
            "shipper_name": payload.shipper_name,
            "shipper_address": payload.shipper_address,
            "receiver_name": payload.receiver_name,
            "receiver_address": payload.receiver_address,
            "summary_status": payload.summary_status,
            "last_status": payload.last_status,
            "last_update_at": payload.last_update_at,
            "note": payload.note,
            "error_txt": payload.error_txt,
            "resi_status": payload.resi_status,
            "version": payload.version,
            "flag": payload.additional_data.flag if payload.additional_data else None,
        }

    def parse_replay_payload(self, raw_payload: bytes) -> SiCepatWebhook:
        """
        Parse a queued SiCepat payload for replay to downstream consumers.

        The shipper address is only kept when the first history step is the
        manifest scan (position mentions "manifested" and status is ``IN``).
        The copy is stamped with ``sent_at``.
        """
        shipping = self.parse(raw_payload)

        if shipping.time_received:
            received_at = datetime.fromtimestamp(shipping.time_received, timezone.utc)
            annotate_egress_latency([], self.courier_code, received_at)

        histories = shipping.get_histories()
        first = histories[0] if histories else SiCepatShipmentHistory()
        manifested = bool(MANIFESTED_PATTERN.search((first.position or "").lower()))
        if not (manifested and first.status == "IN"):
            shipping.shipper_address = ""

        shipping.sent_at = utcnow().isoformat(timespec="milliseconds").replace("+00:00", "Z")
        return shipping

    @staticmethod
    def replay_body(shipping: SiCepatWebhook) -> str:
        """Serialize a replay payload back to JSON."""
        return json.dumps(shipping.model_dump(exclude_none=True), default=str)
