"""Latency accounting for ingested webhooks.

Two gauges are attached to every emitted update:

- ``3pl_to_in_latency_seconds``: ingress wall time minus the carrier's last
  update time. Only present when the carrier time parsed.
- ``in_to_out_latency_seconds``: egress wall time minus ingress wall time.

Negative values are kept but flagged with ``<gauge>_invalid = True``; the
value is never replaced by a sentinel.
"""

from datetime import datetime
from typing import Iterable, Optional

from smartseller_api.core.logger import setup_logger
from smartseller_api.core.timestamps import to_utc, utcnow
from smartseller_api.models.tracking import TrackingUpdate

logger = setup_logger(__name__)

THREE_PL_TO_IN = "3pl_to_in_latency_seconds"
IN_TO_OUT = "in_to_out_latency_seconds"


def seconds_between(start: datetime, end: datetime) -> float:
    return round((to_utc(end) - to_utc(start)).total_seconds(), 3)


def _attach(updates: Iterable[TrackingUpdate], key: str, value: float) -> None:
    invalid = value < 0
    for update in updates:
        update.metadata[key] = value
        if invalid:
            update.metadata[f"{key.removesuffix('_seconds')}_invalid"] = True


def annotate_carrier_latency(
    updates: list,
    courier_code: str,
    received_at: datetime,
    carrier_time: Optional[datetime],
) -> Optional[float]:
    """
    Attach the 3PL-to-ingress gauge.

    Args:
        updates: Updates emitted for one webhook
        courier_code: Carrier tag, for logging
        received_at: Ingress wall time
        carrier_time: Carrier's last update time, None if it did not parse

    Returns:
        Latency in seconds, or None when the carrier time is unknown
    """
    if carrier_time is None:
        return None

    latency = seconds_between(carrier_time, received_at)
    _attach(updates, THREE_PL_TO_IN, latency)

    log = logger.warning if latency < 0 else logger.info
    log(
        f"{courier_code} 3PL to ingress latency: {latency}s",
        extra={"event": "latency_3pl_to_in", "courier": courier_code, "latency_seconds": latency},
    )
    return latency


def annotate_egress_latency(
    updates: list,
    courier_code: str,
    received_at: datetime,
    egress_at: Optional[datetime] = None,
) -> float:
    """Attach the ingress-to-egress gauge, measured now unless given."""
    latency = seconds_between(received_at, egress_at or utcnow())
    _attach(updates, IN_TO_OUT, latency)
    logger.debug(
        f"{courier_code} ingress to egress latency: {latency}s",
        extra={"event": "latency_in_to_out", "courier": courier_code, "latency_seconds": latency},
    )
    return latency
