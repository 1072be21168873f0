"""Pydantic models for carrier webhook payloads.

Carriers add and rename fields without notice, so every model is permissive:
unknown keys are tolerated, every field is optional, and numbers sent where
text is expected are coerced to strings.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class CarrierPayload(BaseModel):
    """Common config for all carrier payload models."""

    class Config:
        extra = "allow"
        coerce_numbers_to_str = True


def _first(*values: Optional[str]) -> str:
    """First non-blank value, stripped."""
    for value in values:
        if value and value.strip():
            return value.strip()
    return ""


class CourierDriver(CarrierPayload):
    id: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None


class AdditionalData(CarrierPayload):
    flag: Optional[str] = None


# ==============================================================================
# JNE
# ==============================================================================


class JNEShipmentHistory(CarrierPayload):
    position: Optional[str] = None
    status: Optional[str] = None
    time: Optional[str] = None


class JNEDetails(CarrierPayload):
    """Legacy ``details`` block."""

    weight: Optional[float] = None
    service_type: Optional[str] = None
    service_name: Optional[str] = None
    receiver_name: Optional[str] = None
    sender_name: Optional[str] = None
    pod: Optional[str] = None
    pod_photo: Optional[str] = None
    delivery_date: Optional[str] = None
    delivery_time: Optional[str] = None


class JNEWebhook(CarrierPayload):
    """JNE webhook in either the current or the legacy dialect."""

    # Current dialect
    airwaybill_number: Optional[str] = None
    courier_name: Optional[str] = None
    courier_service: Optional[str] = None
    courier_driver: Optional[CourierDriver] = None
    actual_shipping_fee: Optional[float] = None
    actual_weight: Optional[float] = None
    shipment_date: Optional[str] = None
    shipper_name: Optional[str] = None
    shipper_address: Optional[str] = None
    receiver_name: Optional[str] = None
    receiver_address: Optional[str] = None
    summary_status: Optional[str] = None
    last_status: Optional[str] = None
    last_update_at: Optional[str] = None
    shipment_histories: Optional[List[JNEShipmentHistory]] = None
    additional_data: Optional[AdditionalData] = None
    note: Optional[str] = None
    error_txt: Optional[str] = None
    resi_status: Optional[str] = None
    version: Optional[str] = None
    sent_at: Optional[str] = None

    # Legacy dialect
    cnote_no: Optional[str] = None
    awb: Optional[str] = None
    status: Optional[str] = None
    status_code: Optional[str] = None
    status_desc: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    city: Optional[str] = None
    office: Optional[str] = None
    timestamp: Optional[str] = None
    event_date: Optional[str] = None
    event_time: Optional[str] = None
    webhook_id: Optional[str] = None
    reference: Optional[str] = None
    details: Optional[JNEDetails] = None

    def get_tracking_number(self) -> str:
        """Extract AWB from whichever field the dialect used."""
        return _first(self.airwaybill_number, self.cnote_no, self.awb)

    def get_status_code(self) -> str:
        return _first(self.last_status, self.status_code, self.status)

    def get_status_text(self) -> str:
        return _first(self.summary_status, self.status_desc, self.description, self.note)

    def get_legacy_event_time(self) -> Optional[str]:
        """Compose the legacy ``event_date`` + ``event_time`` pair."""
        if self.event_date and self.event_time:
            return f"{self.event_date.strip()} {self.event_time.strip()}"
        return None


# ==============================================================================
# SICEPAT
# ==============================================================================


class SiCepatShipmentHistory(CarrierPayload):
    position: Optional[str] = None
    status: Optional[str] = None
    note: Optional[str] = None
    time: Optional[str] = None


class SiCepatWebhook(CarrierPayload):
    airwaybill_number: Optional[str] = None
    courier_name: Optional[str] = None
    courier_service: Optional[str] = None
    courier_driver: Optional[CourierDriver] = None
    actual_shipping_fee: Optional[float] = None
    actual_weight: Optional[float] = None
    shipment_date: Optional[str] = None
    shipper_name: Optional[str] = None
    shipper_address: Optional[str] = None
    receiver_name: Optional[str] = None
    receiver_address: Optional[str] = None
    summary_status: Optional[str] = None
    last_status: Optional[str] = None
    last_update_at: Optional[str] = None
    shipment_histories: Optional[List[SiCepatShipmentHistory]] = None
    additional_data: Optional[AdditionalData] = None
    note: Optional[str] = None
    error_txt: Optional[str] = None
    resi_status: Optional[str] = None
    version: Optional[str] = None
    sent_at: Optional[str] = None

    # Stamped on the queued copy when the webhook was received
    time_received: Optional[float] = None

    def get_tracking_number(self) -> str:
        return _first(self.airwaybill_number)

    def get_status_text(self) -> str:
        return _first(self.last_status, self.summary_status)

    def get_histories(self) -> List[SiCepatShipmentHistory]:
        return list(self.shipment_histories or [])


# ==============================================================================
# NINJAVAN
# ==============================================================================


class NinjaVanOrder(CarrierPayload):
    tracking_id: Optional[str] = None
    order_id: Optional[str] = None

    def get_tracking_number(self) -> str:
        return _first(self.tracking_id, self.order_id)


class NinjaVanDetails(CarrierPayload):
    service_type: Optional[str] = None
    parcel_weight: Optional[float] = None
    parcel_value: Optional[float] = None
    cod_amount: Optional[float] = None
    delivery_type: Optional[str] = None
    delivery_slot: Optional[str] = None
    priority: Optional[str] = None
    special_request: Optional[str] = None
    pod: Optional[str] = None
    pod_image: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_phone: Optional[str] = None


class NinjaVanWebhook(CarrierPayload):
    tracking_id: Optional[str] = None
    order_id: Optional[str] = None
    status: Optional[str] = None
    status_code: Optional[str] = None
    status_message: Optional[str] = None
    sub_status: Optional[str] = None
    description: Optional[str] = None
    timestamp: Optional[str] = None
    updated_at: Optional[str] = None
    location: Optional[str] = None
    hub: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None
    webhook_event_id: Optional[str] = None
    webhook_event_type: Optional[str] = None
    comments: Optional[str] = None
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    vehicle_number: Optional[str] = None
    orders: Optional[List[NinjaVanOrder]] = Field(None, description="Batched parcels")
    details: Optional[NinjaVanDetails] = None

    def get_tracking_number(self) -> str:
        return _first(self.tracking_id, self.order_id)

    def get_status_text(self) -> str:
        return _first(self.status_message, self.description, self.status)
