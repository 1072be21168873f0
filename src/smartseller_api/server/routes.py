"""API routes for carrier webhook ingestion."""

import asyncio
from typing import List, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from smartseller_api.config.constants import GENERIC_SIGNATURE_HEADER, SUPPORTED_COURIERS
from smartseller_api.core.errors import SignatureInvalidError, WebhookError
from smartseller_api.core.logger import setup_logger
from smartseller_api.core.monitoring import capture_exception, set_webhook_context
from smartseller_api.models.tracking import TrackingUpdate
from smartseller_api.server.app import track_task

logger = setup_logger(__name__)
router = APIRouter()


def webhook_response(success: bool, error_message: str = "", status_code: int = 200, **extra) -> JSONResponse:
    """Machine-parseable body carriers receive on every outcome."""
    body = {"success": success, "error_message": error_message}
    body.update(extra)
    return JSONResponse(content=body, status_code=status_code)


def signature_header(request: Request, carrier: str) -> Optional[str]:
    """``<Carrier>-Signature`` first, then the generic ``X-Signature``."""
    return request.headers.get(f"{carrier}-signature") or request.headers.get(GENERIC_SIGNATURE_HEADER)


@router.get("/")
async def root() -> dict:
    """Root endpoint with basic service info."""
    return {
        "service": "SmartSeller Tracking Service",
        "version": "1.0.0",
        "endpoints": {
            "webhook": "POST /webhooks/{carrier}",
            "carriers": list(SUPPORTED_COURIERS),
            "health": "GET /health",
            "pool_stats": "GET /health/db/stats",
            "docs": "GET /docs",
        },
    }


@router.post("/webhooks/{carrier}")
async def carrier_webhook(carrier: str, request: Request) -> JSONResponse:
    """
    Receive a carrier tracking webhook.

    The raw body is verified against the carrier's HMAC secret, normalized into
    canonical tracking updates, and handed to the tracking sink in the
    background.

    Args:
        carrier: Carrier tag (jne, sicepat, ninjavan)
        request: The HTTP request from the carrier

    Returns:
        ``{success, error_message}`` with 200, 400, 401, 404 or 500
    """
    carrier = carrier.lower()
    raw_body = await request.body()
    set_webhook_context(carrier)

    try:
        updates: List[TrackingUpdate] = request.app.state.dispatcher.dispatch(
            carrier, raw_body, signature_header(request, carrier)
        )
    except SignatureInvalidError as e:
        logger.warning(f"Rejected {carrier} webhook: {e.code}")
        # Same body for every signature failure so probes learn nothing
        return webhook_response(False, "unauthorized", e.status_code)
    except WebhookError as e:
        if e.status_code >= 500:
            logger.error(f"Error processing {carrier} webhook: {e}", exc_info=True)
            capture_exception(e, {"courier": carrier})
        else:
            logger.warning(f"Rejected {carrier} webhook: {e.code}: {e.message}")
        return webhook_response(False, e.message, e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error processing {carrier} webhook: {e}", exc_info=True)
        capture_exception(e, {"courier": carrier})
        return webhook_response(False, "internal error", 500)

    if updates:
        set_webhook_context(carrier, updates[0].tracking_number)

    forwarder = request.app.state.forwarder
    if updates and forwarder.enabled:
        track_task(asyncio.create_task(forwarder.forward_updates(carrier, updates)))

    return webhook_response(True, updates=len(updates))
