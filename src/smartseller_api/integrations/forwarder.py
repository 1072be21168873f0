"""Forward normalized tracking updates to the tracking sink."""

from typing import List, Optional

import httpx

from smartseller_api.core.logger import setup_logger
from smartseller_api.models.tracking import TrackingUpdate

logger = setup_logger(__name__)


class TrackingForwarder:
    """Posts ordered batches of tracking updates to a downstream service."""

    def __init__(self, forward_url: Optional[str] = None, timeout: float = 10.0):
        """
        Initialize forwarder.

        Args:
            forward_url: URL to forward updates to (None = disabled)
            timeout: Request timeout in seconds
        """
        self.forward_url = forward_url
        self.timeout = timeout
        self.enabled = bool(forward_url)

        if self.enabled:
            logger.info(f"Tracking forwarding enabled to: {forward_url}")
        else:
            logger.info("Tracking forwarding disabled (no FORWARD_TRACKING_URL set)")

    @staticmethod
    def build_payload(courier_code: str, updates: List[TrackingUpdate]) -> dict:
        """
        Serialize a batch, keeping carrier order and dropping repeats of the
        same ``(tracking_number, timestamp, status)`` key.
        """
        seen = set()
        items = []
        for update in updates:
            key = update.sink_key()
            if key in seen:
                continue
            seen.add(key)
            items.append(update.model_dump(mode="json"))
        return {"courier": courier_code, "updates": items}

    async def forward_updates(self, courier_code: str, updates: List[TrackingUpdate]) -> bool:
        """
        Forward one webhook's updates as a single ordered request.

        Args:
            courier_code: Carrier tag
            updates: Updates in carrier order

        Returns:
            True if forwarding succeeded, False otherwise
        """
        if not self.enabled:
            logger.debug("Forwarding disabled, skipping")
            return False

        if not updates:
            logger.debug(f"No {courier_code} updates to forward")
            return True

        payload = self.build_payload(courier_code, updates)

        try:
            logger.info(f"Forwarding {len(payload['updates'])} {courier_code} update(s) to {self.forward_url}")

            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.forward_url, json=payload)
                response.raise_for_status()

            logger.info(f"Successfully forwarded updates (status={response.status_code})")
            return True

        except httpx.HTTPStatusError as e:
            logger.error(
                f"HTTP error forwarding updates: {e.response.status_code} - {e.response.text}"
            )
            return False

        except httpx.TimeoutException:
            logger.error(f"Timeout forwarding updates to {self.forward_url}")
            return False

        except httpx.HTTPError as e:
            logger.error(f"Error forwarding updates: {e}", exc_info=True)
            return False
