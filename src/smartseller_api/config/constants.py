"""
Centralized application constants.

This file acts as the single point of truth for carrier vocabulary and
database defaults shared between the webhook service and the tenancy layer.
"""

# ==============================================================================
# CARRIERS
# ==============================================================================

COURIER_JNE = "jne"
COURIER_SICEPAT = "sicepat"
COURIER_NINJAVAN = "ninjavan"

SUPPORTED_COURIERS = (COURIER_JNE, COURIER_SICEPAT, COURIER_NINJAVAN)

# JNE proof-of-delivery codes; any of these means the parcel was delivered
# regardless of what the status text says.
JNE_DELIVERED_CODES = frozenset([f"D{i:02d}" for i in range(1, 13)] + ["DB1"])

# Generic signature header accepted for every carrier
GENERIC_SIGNATURE_HEADER = "X-Signature"

# ==============================================================================
# TIMESTAMPS
# ==============================================================================

# Accepted carrier timestamp layouts, tried in order
TIMESTAMP_FORMATS = (
    "%Y-%m-%dT%H:%M:%S%z",  # RFC3339, 2006-01-02T15:04:05Z, +07:00 offsets
    "%Y-%m-%dT%H:%M:%S.%f%z",  # 2006-01-02T15:04:05.000Z
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S%z",
)

# Indonesia Western Time, used for log timestamps
LOCAL_TIMEZONE = "Asia/Jakarta"

TIMESTAMP_SOURCE_INGRESS = "ingress"

# ==============================================================================
# DATABASE POOLS
# ==============================================================================

SHARED_IDENTIFIER = "shared"

DEFAULT_MAX_OPEN_CONNS = 100
DEFAULT_MAX_IDLE_CONNS = 10
DEFAULT_CONN_MAX_LIFETIME_SECONDS = 3600
DEFAULT_CONN_MAX_IDLE_TIME_SECONDS = 600
DEFAULT_CONNECT_TIMEOUT_SECONDS = 10
DEFAULT_SSL_MODE = "prefer"

PING_TIMEOUT_SECONDS = 5.0
DEFAULT_HEALTH_CHECK_INTERVAL_SECONDS = 30

# ==============================================================================
# TENANT RESOLUTION
# ==============================================================================

STOREFRONT_SLUG_HEADER = "X-Storefront-Slug"
STOREFRONT_DOMAIN_HEADER = "X-Storefront-Domain"
TENANT_ID_HEADER = "X-Tenant-ID"

TENANT_RESOLUTION_TIMEOUT_SECONDS = 5.0
DEFAULT_STOREFRONT_CACHE_TTL_SECONDS = 3600
