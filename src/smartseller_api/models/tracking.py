"""Canonical tracking states and the update record emitted per webhook."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field, field_validator


class TrackingState(str, Enum):
    """Closed set of shipment states every carrier dialect maps onto.

    No ordering is enforced between consecutive states for the same parcel;
    consumers reconcile by timestamp and status.
    """

    PICKUP_PENDING = "pickup_pending"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    DELIVERY_FAILED = "delivery_failed"
    RETURNING = "returning"
    RETURNED = "returned"
    EXCEPTION = "exception"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        """Whether the carrier will normally send nothing after this state."""
        return self in (TrackingState.DELIVERED, TrackingState.RETURNED)


class TrackingUpdate(BaseModel):
    """One canonical tracking event handed to the tracking sink."""

    tracking_number: str = Field(..., min_length=1, description="Carrier AWB")
    courier_code: str = Field(..., description="Lowercase carrier tag")
    status: TrackingState
    status_text: str = Field("", description="Free text reported by carrier")
    location: str = ""
    timestamp: datetime = Field(..., description="Event time (UTC)")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("tracking_number")
    @classmethod
    def _strip_tracking_number(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("tracking_number must not be blank")
        return value

    def sink_key(self) -> tuple:
        """Idempotency key the tracking sink deduplicates on."""
        return (self.tracking_number, self.timestamp, self.status)
