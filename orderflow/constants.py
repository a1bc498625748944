"""Shared identifiers for the order fulfilment process."""

from __future__ import annotations

from enum import Enum

ORDER_PROCESS_ID = "order-fulfillment-poc"

# Hints passed to the engine with every failed job.
JOB_FAIL_RETRIES = 3
JOB_FAIL_RETRY_BACKOFF_MS = 5000

DEFAULT_UPDATE_RETRIES = 3
DEFAULT_HTTP_TIMEOUT = 5.0

WAREHOUSES = ("Mumbai", "Delhi", "Bangalore", "Chennai")


class TaskType(str, Enum):
    """Service task types declared by the order fulfilment process."""

    VERIFY_PAYMENT = "verify-payment"
    RESERVE_INVENTORY = "reserve-inventory"
    SEND_NOTIFICATION = "send-notification"


# Task types in the order the process visits them.
PROCESS_SEQUENCE = (
    TaskType.VERIFY_PAYMENT,
    TaskType.RESERVE_INVENTORY,
    TaskType.SEND_NOTIFICATION,
)


class WorkflowStatus(str, Enum):
    """Stage labels written into ``workflow_status`` order metadata."""

    STARTED = "started"
    PAYMENT_VERIFIED = "payment_verified"
    INVENTORY_RESERVED = "inventory_reserved"
    COMPLETED = "completed"


STAGE_NAMES = {
    TaskType.VERIFY_PAYMENT: "Payment Verification",
    TaskType.RESERVE_INVENTORY: "Inventory Reservation",
    TaskType.SEND_NOTIFICATION: "Customer Notification",
}
