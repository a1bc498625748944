"""Storefront side of the integration: order metadata and its endpoints."""

from .orders import InMemoryOrderRepository, OrderRecord, OrderRepository
from .subscribers import on_order_placed

__all__ = [
    "InMemoryOrderRepository",
    "OrderRecord",
    "OrderRepository",
    "on_order_placed",
]
