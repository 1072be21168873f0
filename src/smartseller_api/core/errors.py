"""Typed errors raised by webhook ingestion and the database layer.

Each webhook error carries the HTTP status the boundary answers with, so
routes never need to inspect messages to pick a status code.
"""


class WebhookError(Exception):
    """Base class for webhook ingestion failures."""

    code = "webhook_error"
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class SignatureInvalidError(WebhookError):
    code = "signature_invalid"
    status_code = 401


class PayloadParseError(WebhookError):
    code = "payload_unparseable"
    status_code = 400


class MissingTrackingNumberError(WebhookError):
    code = "missing_tracking_number"
    status_code = 400


class UnsupportedCarrierError(WebhookError):
    code = "unsupported_carrier"
    status_code = 404


class NormalizationError(WebhookError):
    """Unexpected failure inside a carrier normalizer."""

    code = "normalization_failed"
    status_code = 500


class DatabaseError(Exception):
    """Base class for connection manager failures."""

    code = "db_error"


class DatabaseNotConfiguredError(DatabaseError):
    code = "db_not_configured"


class TenantNotConfiguredError(DatabaseError):
    code = "tenant_not_configured"

    def __init__(self, tenant_id: str):
        super().__init__(f"tenant database not configured: {tenant_id}")
        self.tenant_id = tenant_id


class DatabaseUnhealthyError(DatabaseError):
    code = "db_unhealthy"


class DatabaseTimeoutError(DatabaseError):
    code = "timeout"


class UnsupportedTenantTypeError(DatabaseError):
    code = "unsupported_tenant_type"


class TenantResolutionError(Exception):
    """Request could not be mapped to a storefront. Answered with 400."""

    code = "tenant_unresolved"
    status_code = 400
