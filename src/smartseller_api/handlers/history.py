"""History-event filtering."""

from typing import List

from smartseller_api.config.constants import TIMESTAMP_SOURCE_INGRESS
from smartseller_api.core.logger import setup_logger
from smartseller_api.core.timestamps import is_midnight_placeholder
from smartseller_api.models.tracking import TrackingUpdate

logger = setup_logger(__name__)


def drop_midnight_placeholders(updates: List[TrackingUpdate]) -> List[TrackingUpdate]:
    """
    Omit updates whose carrier timestamp is exactly 00:00:00.

    Carriers emit midnight placeholders for history steps they have no real
    time for. The check uses the carrier's own wall clock, before conversion to
    UTC. Updates stamped with the ingress time are never dropped.
    """
    kept = []
    for update in updates:
        if (
            update.metadata.get("timestamp_source") != TIMESTAMP_SOURCE_INGRESS
            and is_midnight_placeholder(update.timestamp)
        ):
            logger.info(
                "Omitting event with 00:00:00 timestamp",
                extra={
                    "event": "omitting_zero_time_event",
                    "tracking_number": update.tracking_number,
                    "status": update.status.value,
                },
            )
            continue
        kept.append(update)
    return kept
