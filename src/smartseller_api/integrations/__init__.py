"""Integrations module - Downstream delivery of tracking updates."""

from smartseller_api.integrations.forwarder import TrackingForwarder

__all__ = ["TrackingForwarder"]
