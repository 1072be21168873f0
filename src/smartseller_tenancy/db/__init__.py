"""Database module."""

from .base import Base, get_session_factory, init_db
from .models import Storefront
from .repository import StorefrontRepository

__all__ = ["Base", "get_session_factory", "init_db", "Storefront", "StorefrontRepository"]
