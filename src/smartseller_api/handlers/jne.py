"""JNE webhook normalizer.

JNE sends one of two dialects: the current one (``airwaybill_number``,
``last_status``, ``summary_status``, ``last_update_at``) and a legacy one
(``cnote_no``/``awb``, ``status_code``, ``status_desc``, ``event_date`` +
``event_time``). Both map to a single update per webhook.
"""

from datetime import datetime
from typing import List, Optional, Tuple

from smartseller_api.config.constants import COURIER_JNE, JNE_DELIVERED_CODES, TIMESTAMP_SOURCE_INGRESS
from smartseller_api.core.errors import MissingTrackingNumberError
from smartseller_api.core.logger import setup_logger
from smartseller_api.core.timestamps import pick_event_time
from smartseller_api.handlers.base import CarrierHandler, TextRule, match_code, match_text
from smartseller_api.models.carriers import JNEWebhook
from smartseller_api.models.tracking import TrackingState, TrackingUpdate

logger = setup_logger(__name__)

S = TrackingState

CODE_TABLE = {
    **dict.fromkeys(
        ["MANIFESTED", "PICKUPED", "PICKUP_COMPLETED", "PICKUP", "PICKED", "MANIFEST", "M01", "M02"],
        S.PICKED_UP,
    ),
    **dict.fromkeys(
        ["IN_TRANSIT", "INTRANSIT", "ON_TRANSIT", "TRANSIT", "SORTING", "T01", "T02", "T03"],
        S.IN_TRANSIT,
    ),
    **dict.fromkeys(
        ["OUT_FOR_DELIVERY", "WITH_DELIVERY_COURIER", "DELIVERING", "O01", "O02"],
        S.OUT_FOR_DELIVERY,
    ),
    **dict.fromkeys(["DELIVERED", "DELIVERY_COMPLETED"], S.DELIVERED),
    **dict.fromkeys(
        ["DELIVERY_FAILED", "FAILED", "UNSUCCESSFUL", "F01", "F02", "F03"],
        S.DELIVERY_FAILED,
    ),
    **dict.fromkeys(["RETURN_TO_ORIGIN", "RETURNING", "RETURN", "R01", "R02"], S.RETURNING),
    **dict.fromkeys(["RETURNED", "RTO", "R03"], S.RETURNED),
    **dict.fromkeys(["CANCELLED", "VOID", "CANCEL", "C01"], S.EXCEPTION),
    **dict.fromkeys(["BOOKING", "BOOKED", "CREATED", "B01"], S.PICKUP_PENDING),
}

# Order matters: failure and return phrases must win over the generic
# "pengiriman"/"delivery" words they contain.
TEXT_RULES = (
    TextRule(("in_transit", "in transit"), S.IN_TRANSIT),
    TextRule(("manifested",), S.PICKED_UP),
    TextRule(("pickup_completed", "pickup completed"), S.PICKED_UP),
    TextRule(("out_for_delivery", "out for delivery", "with delivery courier"), S.OUT_FOR_DELIVERY),
    TextRule(("delivery_completed", "delivery completed"), S.DELIVERED),
    TextRule(("delivery_failed", "delivery failed"), S.DELIVERY_FAILED),
    TextRule(("return_to_origin", "return to origin"), S.RETURNING),
    TextRule(("failed", "unsuccessful", "gagal"), S.DELIVERY_FAILED),
    TextRule(("returned", "dikembalikan"), S.RETURNED),
    TextRule(("returning", "return"), S.RETURNING),
    TextRule(("delivered", "terkirim", "selesai", "diterima"), S.DELIVERED),
    TextRule(("cancelled", "cancel", "void", "dibatalkan", "batal"), S.EXCEPTION),
    TextRule(("booking", "booked", "created", "dibuat"), S.PICKUP_PENDING),
    TextRule(("pickup", "picked", "manifest", "diambil", "dijemput"), S.PICKED_UP),
    TextRule(("transit", "sorting", "perjalanan"), S.IN_TRANSIT),
    TextRule(("delivering", "pengiriman", "diantar"), S.OUT_FOR_DELIVERY),
)


def is_delivered_code(code: str) -> bool:
    return bool(code) and code.strip().upper() in JNE_DELIVERED_CODES


def normalize_jne_status(status_code: str, status_text: str) -> TrackingState:
    """
    Map a JNE code/text pair to a canonical state.

    Proof-of-delivery codes short-circuit to ``DELIVERED``; then the exact code
    table is consulted; then substring rules on the lowercased text.
    """
    if is_delivered_code(status_code):
        return S.DELIVERED

    state = match_code(status_code, CODE_TABLE)
    if state is not None:
        return state

    return match_text(status_text, TEXT_RULES)


def build_location(location: Optional[str], city: Optional[str], office: Optional[str]) -> str:
    """Combine location, city, and office; office is parenthesized."""
    location = (location or "").strip()
    city = (city or "").strip()
    office = (office or "").strip()

    parts = []
    if location:
        parts.append(location)
    if city and city != location:
        parts.append(city)
    if office and office not in (location, city):
        parts.append(f"({office})")
    return ", ".join(parts)


class JNEHandler(CarrierHandler):
    """Normalizer for JNE webhooks."""

    courier_code = COURIER_JNE
    payload_model = JNEWebhook

    def build_updates(
        self, payload: JNEWebhook, received_at: datetime
    ) -> Tuple[List[TrackingUpdate], Optional[datetime]]:
        tracking_number = payload.get_tracking_number()
        if not tracking_number:
            logger.warning("JNE webhook without airwaybill_number, cnote_no or awb")
            raise MissingTrackingNumberError("missing airwaybill_number in JNE webhook")

        status_code = payload.get_status_code()
        status_text = payload.get_status_text()
        status = normalize_jne_status(status_code, status_text)

        event_time, timestamp_source = pick_event_time(
            [
                ("last_update_at", payload.last_update_at),
                ("event_date_time", payload.get_legacy_event_time()),
                ("timestamp", payload.timestamp),
            ],
            now=received_at,
        )

        details = payload.details
        driver = payload.courier_driver
        metadata = {
            "original_status": status_code,
            # Current format fields
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
            # Legacy fields
            "webhook_id": payload.webhook_id,
            "reference": payload.reference,
            "status_code": payload.status_code,
            "office": payload.office,
        }
        if details:
            metadata.update(
                {
                    "weight": details.weight,
                    "service_type": details.service_type,
                    "service_name": details.service_name,
                    "sender_name": details.sender_name,
                    "pod": details.pod,
                    "pod_photo": details.pod_photo,
                    "delivery_date": details.delivery_date,
                    "delivery_time": details.delivery_time,
                }
            )
            if details.receiver_name and not payload.receiver_name:
                metadata["receiver_name"] = details.receiver_name

        update = self.make_update(
            tracking_number=tracking_number,
            status=status,
            status_text=status_text,
            location=build_location(payload.location, payload.city, payload.office),
            timestamp=event_time,
            timestamp_source=timestamp_source,
            metadata=metadata,
        )

        logger.info(
            "JNE webhook processed",
            extra={
                "event": "jne_webhook_processed",
                "tracking_number": tracking_number,
                "status": status.value,
                "status_code": status_code,
            },
        )

        carrier_time = None if timestamp_source == TIMESTAMP_SOURCE_INGRESS else event_time
        return [update], carrier_time
