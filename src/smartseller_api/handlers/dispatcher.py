"""Routes a raw carrier webhook through verification and normalization."""

from datetime import datetime
from typing import Dict, List, Optional

from smartseller_api.config.settings import Settings, settings
from smartseller_api.core.errors import SignatureInvalidError, UnsupportedCarrierError
from smartseller_api.core.latency import annotate_egress_latency
from smartseller_api.core.logger import setup_logger
from smartseller_api.core.signature import VerificationResult
from smartseller_api.core.timestamps import utcnow
from smartseller_api.handlers.base import CarrierHandler
from smartseller_api.handlers.jne import JNEHandler
from smartseller_api.handlers.ninjavan import NinjaVanHandler
from smartseller_api.handlers.sicepat import SiCepatHandler
from smartseller_api.models.tracking import TrackingUpdate

logger = setup_logger(__name__)

HANDLER_CLASSES = (JNEHandler, SiCepatHandler, NinjaVanHandler)


class WebhookDispatcher:
    """
    Selects the carrier handler and runs verify, normalize, latency annotation.

    Stateless per request; one instance is shared by all requests.
    """

    def __init__(self, handlers: Dict[str, CarrierHandler]):
        self.handlers = handlers

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "WebhookDispatcher":
        config = config or settings
        return cls(
            {
                handler_cls.courier_code: handler_cls(config.webhook_secret_for(handler_cls.courier_code))
                for handler_cls in HANDLER_CLASSES
            }
        )

    def get_handler(self, courier_code: str) -> CarrierHandler:
        handler = self.handlers.get((courier_code or "").lower())
        if handler is None:
            raise UnsupportedCarrierError(f"unsupported carrier: {courier_code}")
        return handler

    def dispatch(
        self,
        courier_code: str,
        raw_payload: bytes,
        signature: Optional[str],
        received_at: Optional[datetime] = None,
    ) -> List[TrackingUpdate]:
        """
        Verify and normalize one webhook.

        Args:
            courier_code: Carrier tag from the URL
            raw_payload: Exact request body
            signature: Signature header value, if any
            received_at: Ingress wall time (defaults to now)

        Returns:
            Updates in carrier order, each annotated with both latency gauges

        Raises:
            UnsupportedCarrierError: Unknown carrier tag
            SignatureInvalidError: Signature did not verify; payload is not parsed
            PayloadParseError, MissingTrackingNumberError, NormalizationError: from the handler
        """
        received_at = received_at or utcnow()
        handler = self.get_handler(courier_code)

        result = handler.verify(raw_payload, signature)
        if result is VerificationResult.INVALID:
            raise SignatureInvalidError("invalid webhook signature")

        updates = handler.normalize(raw_payload, received_at)
        for update in updates:
            update.metadata["signature"] = result.value

        annotate_egress_latency(updates, handler.courier_code, received_at)
        logger.info(
            f"Dispatched {len(updates)} {handler.courier_code} update(s)",
            extra={"event": "webhook_dispatched", "courier": handler.courier_code, "update_count": len(updates)},
        )
        return updates
