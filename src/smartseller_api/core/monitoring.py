"""
GlitchTip Error Monitoring Utilities

Helper functions for error tracking and context management.
"""

import logging
from typing import Any, Dict, Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from smartseller_api.core.logger import setup_logger

logger = setup_logger(__name__)


def init_monitoring(dsn: Optional[str], environment: str) -> bool:
    """
    Initialize GlitchTip (Sentry-compatible) monitoring.

    Args:
        dsn: GlitchTip DSN; monitoring stays off when empty
        environment: Deployment environment name

    Returns:
        True if the SDK was initialized
    """
    if not dsn:
        return False

    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                LoggingIntegration(
                    level=None,  # Capture all log levels as breadcrumbs
                    event_level=logging.ERROR,  # Send ERROR logs as events
                ),
            ],
            traces_sample_rate=0.1,
            send_default_pii=False,
        )
        logger.info("GlitchTip error monitoring initialized")
        return True
    except Exception as e:
        logger.error(f"Failed to initialize GlitchTip: {e}")
        return False


def set_webhook_context(
    courier_code: str,
    tracking_number: Optional[str] = None,
    **extra_tags,
) -> None:
    """
    Set webhook-specific context for error tracking.

    Args:
        courier_code: Carrier tag (jne, sicepat, ninjavan)
        tracking_number: AWB of the parcel, when known
        **extra_tags: Additional tags to add
    """
    try:
        sentry_sdk.set_tag("webhook.courier", courier_code)
        if tracking_number:
            sentry_sdk.set_tag("webhook.tracking_number", tracking_number)

        for key, value in extra_tags.items():
            sentry_sdk.set_tag(key, value)

        context_data = {"courier": courier_code, "tracking_number": tracking_number}
        context_data.update(extra_tags)
        sentry_sdk.set_context("webhook", context_data)
    except Exception as e:
        logger.warning(f"Failed to set webhook context: {e}")


def capture_exception(
    error: BaseException,
    context: Optional[Dict[str, Any]] = None,
    level: str = "error",
) -> None:
    """
    Capture an exception and send to GlitchTip.

    Args:
        error: The exception to capture
        context: Additional context data
        level: Error level (error, warning, info)
    """
    try:
        with sentry_sdk.new_scope() as scope:
            if context:
                scope.set_context("custom", context)
            scope.level = level
            sentry_sdk.capture_exception(error)
    except Exception as e:
        logger.warning(f"Failed to capture exception in GlitchTip: {e}")
