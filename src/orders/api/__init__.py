"""Orders domain API package."""

from orders.api.errors import register_fulfillment_error_handlers
from orders.api.routes import order_router, shipping_router

__all__ = ["order_router", "shipping_router", "register_fulfillment_error_handlers"]
