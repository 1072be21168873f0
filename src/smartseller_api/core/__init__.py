"""Core module - Logging, signature verification, errors, and timestamps."""

from smartseller_api.core.logger import setup_logger
from smartseller_api.core.signature import VerificationResult, verify_signature

__all__ = ["setup_logger", "VerificationResult", "verify_signature"]
