"""Handlers module - Carrier webhook normalizers and the dispatcher."""

from smartseller_api.handlers.dispatcher import WebhookDispatcher
from smartseller_api.handlers.jne import JNEHandler
from smartseller_api.handlers.ninjavan import NinjaVanHandler
from smartseller_api.handlers.sicepat import SiCepatHandler

__all__ = ["WebhookDispatcher", "JNEHandler", "SiCepatHandler", "NinjaVanHandler"]
