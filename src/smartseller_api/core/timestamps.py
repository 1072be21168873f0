"""Carrier timestamp parsing and event-time selection."""

from datetime import datetime, timezone
from typing import Iterable, Optional, Tuple

from smartseller_api.config.constants import TIMESTAMP_FORMATS, TIMESTAMP_SOURCE_INGRESS


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a carrier timestamp in any of the accepted layouts.

    The carrier's own UTC offset is preserved so wall-clock checks (like the
    midnight placeholder filter) see what the carrier sent. Values without an
    offset are taken as UTC.

    Args:
        value: Raw timestamp string

    Returns:
        Timezone-aware datetime, or None if empty or unparseable
    """
    if not value or not value.strip():
        return None

    value = value.strip()
    for fmt in TIMESTAMP_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    # RFC3339 variants strptime does not cover (e.g. other fraction widths)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def pick_event_time(
    candidates: Iterable[Tuple[str, Optional[str]]],
    now: Optional[datetime] = None,
) -> Tuple[datetime, str]:
    """
    Walk a fallback ladder of timestamp fields.

    Args:
        candidates: Ordered ``(source_name, raw_value)`` pairs
        now: Ingress wall time used when nothing parses

    Returns:
        ``(event_time, source_name)``; source is ``"ingress"`` for the wall-time fallback
    """
    for source, raw in candidates:
        parsed = parse_timestamp(raw)
        if parsed is not None:
            return parsed, source
    return (now or utcnow()), TIMESTAMP_SOURCE_INGRESS


def is_midnight_placeholder(value: datetime) -> bool:
    """True when the wall-clock time is exactly 00:00:00."""
    return value.hour == 0 and value.minute == 0 and value.second == 0


def format_iso(value: datetime) -> str:
    return to_utc(value).isoformat().replace("+00:00", "Z")
