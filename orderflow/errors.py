"""Exceptions raised by orderflow."""

from __future__ import annotations


class OrderflowError(Exception):
    """Base class for orderflow errors."""


class EngineError(OrderflowError):
    """The orchestration engine rejected a request."""


class WorkflowTaskError(OrderflowError):
    """A task body could not do its unit of work."""


class PaymentVerificationFailed(WorkflowTaskError):
    def __init__(self, order_id: str) -> None:
        super().__init__("Payment verification failed")
        self.order_id = order_id


class InsufficientInventory(WorkflowTaskError):
    """Items for the order are out of stock.

    Kept apart from transport failures so callers can route the order to a
    compensating path (refund, backorder) instead of a blind retry.
    """

    def __init__(self, order_id: str) -> None:
        super().__init__("Inventory not available - items out of stock")
        self.order_id = order_id


class ReservationFailed(WorkflowTaskError):
    def __init__(self, order_id: str, warehouse: str) -> None:
        super().__init__("Failed to reserve inventory")
        self.order_id = order_id
        self.warehouse = warehouse


class OrderNotFound(OrderflowError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order not found: {order_id}")
        self.order_id = order_id


class OrderAlreadyExists(OrderflowError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order already exists: {order_id}")
        self.order_id = order_id
