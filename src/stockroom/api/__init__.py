"""Stockroom domain API package."""

from stockroom.api.routes import (
    company_router,
    customer_router,
    movement_router,
    product_router,
    purchase_order_router,
    receipt_router,
    sales_order_router,
)

__all__ = [
    "product_router",
    "company_router",
    "customer_router",
    "movement_router",
    "purchase_order_router",
    "receipt_router",
    "sales_order_router",
]
