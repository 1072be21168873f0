"""Carrier Webhook Signature Verification.

Verifies that incoming webhooks are genuinely from the carrier using
HMAC-SHA256 over the exact request bytes.
"""

import hashlib
import hmac
from enum import Enum
from typing import Optional

from smartseller_api.core.logger import setup_logger

logger = setup_logger(__name__)


class VerificationResult(str, Enum):
    """Outcome of a signature check."""

    OK = "ok"
    INVALID = "invalid"
    SKIPPED = "skipped"


def compute_signature(raw_payload: bytes, secret: str) -> str:
    """Hex-encoded HMAC-SHA256 of the payload."""
    return hmac.new(secret.encode("utf-8"), raw_payload, hashlib.sha256).hexdigest()


def strip_signature_prefix(signature: str, courier_code: str = "") -> str:
    """
    Remove the scheme prefixes carriers put in front of the digest.

    Args:
        signature: Raw header value
        courier_code: Lowercase carrier tag, used for ``<carrier>-signature=``

    Returns:
        The bare hex digest
    """
    signature = signature.strip()
    prefixes = ["sha256="]
    if courier_code:
        prefixes.insert(0, f"{courier_code}-signature=")

    for prefix in prefixes:
        if signature[: len(prefix)].lower() == prefix:
            signature = signature[len(prefix):]
    return signature


def verify_signature(
    raw_payload: bytes,
    header_signature: Optional[str],
    secret: Optional[str],
    courier_code: str = "",
) -> VerificationResult:
    """
    Verify a carrier webhook signature.

    Args:
        raw_payload: Raw request body as bytes (NOT parsed JSON)
        header_signature: Value from the signature header
        secret: Shared secret for this carrier; empty means test mode
        courier_code: Carrier tag used for prefix stripping and logs

    Returns:
        ``SKIPPED`` when no secret is configured, otherwise ``OK`` or ``INVALID``
    """
    if not secret:
        logger.debug(f"No webhook secret for {courier_code or 'carrier'}, skipping signature check")
        return VerificationResult.SKIPPED

    if not header_signature:
        logger.warning(f"{courier_code} webhook received without signature header")
        return VerificationResult.INVALID

    provided = strip_signature_prefix(header_signature, courier_code)
    expected = compute_signature(raw_payload, secret)

    # Compare bytes so non-ASCII header garbage is rejected rather than raising
    if hmac.compare_digest(expected.encode("ascii"), provided.encode("utf-8")):
        return VerificationResult.OK

    logger.warning(f"Invalid {courier_code} webhook signature. Got: {provided[:16]}...")
    return VerificationResult.INVALID
