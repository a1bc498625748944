"""Order records and their metadata store."""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

from pydantic import BaseModel, Field

from ..errors import OrderAlreadyExists, OrderNotFound


class OrderRecord(BaseModel):
    """The slice of a storefront order this integration reads and writes."""

    id: str
    display_id: Optional[str] = None
    status: str = "pending"
    metadata: Dict[str, Any] = Field(default_factory=dict)


class OrderRepository(Protocol):
    """Protocol for order storage backends."""

    async def create_order(self, order: OrderRecord) -> OrderRecord:
        """Store a new order or raise ``OrderAlreadyExists``."""

    async def retrieve_order(self, order_id: str) -> OrderRecord:
        """Return the order or raise ``OrderNotFound``."""

    async def update_metadata(self, order_id: str, values: Dict[str, Any]) -> OrderRecord:
        """Merge ``values`` into the order's metadata."""

    async def update_status(self, order_id: str, status: str) -> OrderRecord:
        """Set the order status."""


class InMemoryOrderRepository(OrderRepository):
    """Store orders in local memory.

    Useful for tests or local runs of the storefront endpoints. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._orders: Dict[str, OrderRecord] = {}

    def add(self, order: OrderRecord) -> OrderRecord:
        self._orders[order.id] = order
        return order

    async def create_order(self, order: OrderRecord) -> OrderRecord:
        if order.id in self._orders:
            raise OrderAlreadyExists(order.id)
        return self.add(order)

    async def retrieve_order(self, order_id: str) -> OrderRecord:
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    async def update_metadata(self, order_id: str, values: Dict[str, Any]) -> OrderRecord:
        order = await self.retrieve_order(order_id)
        order.metadata = {**order.metadata, **values}
        return order

    async def update_status(self, order_id: str, status: str) -> OrderRecord:
        order = await self.retrieve_order(order_id)
        order.status = status
        return order
