"""NinjaVan webhook normalizer.

NinjaVan can batch several parcels in ``orders[]``; each entry gets its own
update sharing the top-level status, time and location.
"""

from datetime import datetime
from typing import List, Optional, Tuple

from smartseller_api.config.constants import COURIER_NINJAVAN, TIMESTAMP_SOURCE_INGRESS
from smartseller_api.core.errors import MissingTrackingNumberError
from smartseller_api.core.logger import setup_logger
from smartseller_api.core.timestamps import pick_event_time
from smartseller_api.handlers.base import CarrierHandler, TextRule, join_location, match_code, match_text
from smartseller_api.models.carriers import NinjaVanWebhook
from smartseller_api.models.tracking import TrackingState, TrackingUpdate

logger = setup_logger(__name__)

S = TrackingState

CODE_TABLE = {
    **dict.fromkeys(["PENDING", "PENDING_PICKUP", "CREATED", "BOOKED"], S.PICKUP_PENDING),
    **dict.fromkeys(["PICKED_UP", "PICKUP_DONE", "COLLECTED", "MANIFEST"], S.PICKED_UP),
    **dict.fromkeys(
        [
            "IN_TRANSIT",
            "ROUTING",
            "ARRIVED_AT_ORIGIN",
            "DEPARTED_FROM_ORIGIN",
            "ARRIVED_AT_DESTINATION",
            "SORTING",
            "ON_VEHICLE",
            "TRANSIT",
        ],
        S.IN_TRANSIT,
    ),
    **dict.fromkeys(
        ["OUT_FOR_DELIVERY", "ON_VEHICLE_FOR_DELIVERY", "DELIVERY_PENDING", "DELIVERING"],
        S.OUT_FOR_DELIVERY,
    ),
    **dict.fromkeys(["DELIVERED", "COMPLETED", "POD_RECEIVED", "DELIVERY_SUCCESS"], S.DELIVERED),
    **dict.fromkeys(
        ["FAILED_DELIVERY", "DELIVERY_FAIL", "RECIPIENT_NOT_AVAILABLE", "DELIVERY_FAILED"],
        S.DELIVERY_FAILED,
    ),
    **dict.fromkeys(["RETURNING", "RETURN_TO_SENDER", "RTO_PENDING"], S.RETURNING),
    **dict.fromkeys(["RETURNED", "RTO_DELIVERED", "CANCELLED"], S.RETURNED),
    **dict.fromkeys(["EXCEPTION", "DAMAGED", "LOST", "VOID"], S.EXCEPTION),
}

TEXT_RULES = (
    TextRule(("pending", "created", "booked"), S.PICKUP_PENDING),
    TextRule(("picked", "collected", "manifest"), S.PICKED_UP),
    TextRule(("transit", "routing", "sorting", "vehicle"), S.IN_TRANSIT),
    TextRule(("delivery",), S.OUT_FOR_DELIVERY, unless=("delivered", "fail")),
    TextRule(("delivered", "completed", "pod"), S.DELIVERED),
    TextRule(("failed", "unsuccessful"), S.DELIVERY_FAILED),
    TextRule(("returned",), S.RETURNED),
    TextRule(("return",), S.RETURNING),
    TextRule(("cancelled", "void", "exception"), S.EXCEPTION),
)


def normalize_ninjavan_status(status_code: Optional[str], status: Optional[str]) -> TrackingState:
    """Code table on ``status_code``, then text rules on ``status``.

    ``status_message`` and ``description`` are informational and never decide
    the state.
    """
    state = match_code(status_code or "", CODE_TABLE)
    if state is not None:
        return state
    return match_text(status or "", TEXT_RULES)


class NinjaVanHandler(CarrierHandler):
    """Normalizer for NinjaVan webhooks."""

    courier_code = COURIER_NINJAVAN
    payload_model = NinjaVanWebhook

    def build_updates(
        self, payload: NinjaVanWebhook, received_at: datetime
    ) -> Tuple[List[TrackingUpdate], Optional[datetime]]:
        tracking_numbers = self._tracking_numbers(payload)
        if not tracking_numbers:
            logger.warning("NinjaVan webhook without tracking_id or order_id")
            raise MissingTrackingNumberError("missing tracking_id in NinjaVan webhook")

        status_text = payload.get_status_text()
        status = normalize_ninjavan_status(payload.status_code, payload.status)
        event_time, timestamp_source = pick_event_time(
            [("timestamp", payload.timestamp), ("updated_at", payload.updated_at)],
            now=received_at,
        )
        location = join_location(
            payload.location, payload.hub, payload.city, payload.country, payload.postal_code
        )
        metadata = self._metadata(payload)

        updates = [
            self.make_update(
                tracking_number=tracking_number,
                status=status,
                status_text=status_text,
                location=location,
                timestamp=event_time,
                timestamp_source=timestamp_source,
                metadata=dict(metadata, order_id=order_id),
            )
            for tracking_number, order_id in tracking_numbers
        ]

        logger.info(
            "NinjaVan webhook processed",
            extra={
                "event": "ninjavan_webhook_processed",
                "tracking_numbers": [t for t, _ in tracking_numbers],
                "status": status.value,
                "status_code": payload.status_code,
            },
        )

        carrier_time = None if timestamp_source == TIMESTAMP_SOURCE_INGRESS else event_time
        return updates, carrier_time

    def _tracking_numbers(self, payload: NinjaVanWebhook) -> List[Tuple[str, Optional[str]]]:
        """``(tracking_number, order_id)`` per parcel, in payload order."""
        if payload.orders:
            numbers = []
            for index, order in enumerate(payload.orders):
                tracking_number = order.get_tracking_number()
                if not tracking_number:
                    logger.warning(f"Skipping NinjaVan order entry {index} without tracking_id or order_id")
                    continue
                numbers.append((tracking_number, order.order_id))
            return numbers

        tracking_number = payload.get_tracking_number()
        return [(tracking_number, payload.order_id)] if tracking_number else []

    def _metadata(self, payload: NinjaVanWebhook) -> dict:
        metadata = {
            "original_status": payload.status,
            "status_code": payload.status_code,
            "sub_status": payload.sub_status,
            "webhook_event_id": payload.webhook_event_id,
            "webhook_event_type": payload.webhook_event_type,
            "hub": payload.hub,
            "city": payload.city,
            "country": payload.country,
            "postal_code": payload.postal_code,
            "driver_name": payload.driver_name,
            "driver_phone": payload.driver_phone,
            "vehicle_number": payload.vehicle_number,
            "comments": payload.comments,
            "description": payload.description,
        }

        details = payload.details
        if details and details.service_type:
            metadata.update(
                {
                    "service_type": details.service_type,
                    "delivery_type": details.delivery_type,
                    "delivery_slot": details.delivery_slot,
                    "priority": details.priority,
                    "special_request": details.special_request,
                    "pod": details.pod,
                    "pod_image": details.pod_image,
                    "recipient_name": details.recipient_name,
                    "recipient_phone": details.recipient_phone,
                }
            )
            for key in ("parcel_weight", "parcel_value", "cod_amount"):
                value = getattr(details, key)
                if value and value > 0:
                    metadata[key] = value

        return metadata
