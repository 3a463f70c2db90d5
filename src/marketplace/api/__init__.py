"""Marketplace API package."""

from marketplace.api.errors import register_error_handlers
from marketplace.api.routes import admin_router, order_router, vendor_router

__all__ = ["order_router", "vendor_router", "admin_router", "register_error_handlers"]
