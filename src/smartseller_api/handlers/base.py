"""Shared contract and helpers for carrier webhook handlers."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from pydantic import BaseModel, ValidationError

from smartseller_api.core.errors import NormalizationError, PayloadParseError, WebhookError
from smartseller_api.core.latency import annotate_carrier_latency
from smartseller_api.core.logger import setup_logger
from smartseller_api.core.signature import VerificationResult, verify_signature
from smartseller_api.core.timestamps import format_iso, to_utc, utcnow
from smartseller_api.handlers.history import drop_midnight_placeholders
from smartseller_api.models.tracking import TrackingState, TrackingUpdate

logger = setup_logger(__name__)


class TextRule(NamedTuple):
    """Substring rule: any needle matches unless an ``unless`` needle is present."""

    needles: Tuple[str, ...]
    state: TrackingState
    unless: Tuple[str, ...] = ()


def match_code(code: str, table: Mapping[str, TrackingState]) -> Optional[TrackingState]:
    """Exact lookup of an uppercased, trimmed status code."""
    if not code:
        return None
    return table.get(code.strip().upper())


def match_text(text: str, rules: Sequence[TextRule]) -> TrackingState:
    """First matching substring rule on lowercased text, else ``UNKNOWN``."""
    text = (text or "").lower()
    if not text.strip():
        return TrackingState.UNKNOWN

    for rule in rules:
        if any(needle in text for needle in rule.needles) and not any(
            blocker in text for blocker in rule.unless
        ):
            return rule.state
    return TrackingState.UNKNOWN


def join_location(*parts: Optional[str]) -> str:
    """Join non-empty components with ``, `` skipping repeats."""
    seen: List[str] = []
    for part in parts:
        part = (part or "").strip()
        if part and part.lower() not in (s.lower() for s in seen):
            seen.append(part)
    return ", ".join(seen)


def compact(values: Dict[str, object]) -> Dict[str, object]:
    """Drop None and empty-string entries so metadata stays primitive and small."""
    return {k: v for k, v in values.items() if v is not None and v != ""}


class CarrierHandler(ABC):
    """
    Base class for a carrier normalizer.

    Subclasses declare ``courier_code`` and ``payload_model`` and implement
    ``build_updates``. ``normalize`` wraps that with parsing, history filtering,
    UTC conversion and 3PL latency accounting.
    """

    courier_code: str = ""
    payload_model: type = BaseModel

    def __init__(self, secret: Optional[str] = None):
        self.secret = secret or ""

    @property
    def source(self) -> str:
        return f"{self.courier_code}_webhook"

    def verify(self, raw_payload: bytes, signature: Optional[str]) -> VerificationResult:
        return verify_signature(raw_payload, signature, self.secret, self.courier_code)

    def parse(self, raw_payload: bytes):
        """Decode JSON into the carrier's payload model."""
        try:
            return self.payload_model.model_validate_json(raw_payload)
        except ValidationError as e:
            logger.error(
                f"Failed to parse {self.courier_code} webhook payload: {e.error_count()} error(s)",
                extra={"event": "webhook_decode_error", "courier": self.courier_code},
            )
            raise PayloadParseError(f"failed to parse {self.courier_code} webhook payload") from e

    @abstractmethod
    def build_updates(
        self, payload, received_at: datetime
    ) -> Tuple[List[TrackingUpdate], Optional[datetime]]:
        """
        Map a parsed payload to updates in carrier order.

        Returns:
            ``(updates, carrier_last_update_time)``; the time is None if it did not parse
        """

    def normalize(
        self, raw_payload: bytes, received_at: Optional[datetime] = None
    ) -> List[TrackingUpdate]:
        """
        Turn raw webhook bytes into canonical updates.

        Args:
            raw_payload: Exact request body
            received_at: Ingress wall time (defaults to now)

        Returns:
            Updates in carrier-supplied order, possibly empty

        Raises:
            PayloadParseError: Body is not valid JSON for this carrier
            MissingTrackingNumberError: No tracking number in any fallback field
            NormalizationError: Any other failure while mapping
        """
        received_at = received_at or utcnow()
        logger.info(
            f"Processing {self.courier_code} webhook payload",
            extra={"event": "webhook_received", "courier": self.courier_code, "payload_size": len(raw_payload)},
        )

        payload = self.parse(raw_payload)
        try:
            updates, carrier_time = self.build_updates(payload, received_at)
        except WebhookError:
            raise
        except Exception as e:
            logger.error(f"Unexpected error normalizing {self.courier_code} webhook: {e}", exc_info=True)
            raise NormalizationError(str(e)) from e

        updates = drop_midnight_placeholders(updates)
        for update in updates:
            update.timestamp = to_utc(update.timestamp)
            update.metadata["time_received"] = format_iso(received_at)
            update.metadata["terminal"] = update.status.is_terminal
            if update.status is TrackingState.UNKNOWN:
                update.metadata["unknown_status"] = True

        annotate_carrier_latency(updates, self.courier_code, received_at, carrier_time)
        return updates

    def make_update(
        self,
        tracking_number: str,
        status: TrackingState,
        status_text: str,
        location: str,
        timestamp: datetime,
        timestamp_source: str,
        metadata: Dict[str, object],
    ) -> TrackingUpdate:
        meta = compact(metadata)
        meta["source"] = self.source
        meta["timestamp_source"] = timestamp_source
        return TrackingUpdate(
            tracking_number=tracking_number,
            courier_code=self.courier_code,
            status=status,
            status_text=status_text,
            location=location,
            timestamp=timestamp,
            metadata=meta,
        )
