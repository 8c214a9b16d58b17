"""Commerce API package."""

from commerce.api.errors import register_commerce_exception_handlers
from commerce.api.routes import cart_router, catalog_router, order_router, payment_router, review_router

__all__ = [
    "cart_router",
    "catalog_router",
    "order_router",
    "payment_router",
    "review_router",
    "register_commerce_exception_handlers",
]
