"""Storefront event subscribers."""

from __future__ import annotations

import logging

from ..constants import WorkflowStatus
from ..contracts import ProcessInstance, utc_now_iso
from ..trigger import ProcessTrigger
from .orders import OrderRepository

logger = logging.getLogger(__name__)


async def on_order_placed(
    order_id: str, trigger: ProcessTrigger, orders: OrderRepository
) -> ProcessInstance:
    """Start the fulfilment workflow for a newly placed order.

    The process-instance key is recorded on the order. If anything fails the
    error is written to ``workflow_error`` and re-raised.
    """
    logger.info(f"Order placed: {order_id}")
    try:
        order = await orders.retrieve_order(order_id)
        instance = await trigger.start_order_workflow(order.id)
        await orders.update_metadata(
            order.id,
            {
                "workflow_instance": instance.process_instance_key,
                "workflow_status": WorkflowStatus.STARTED.value,
                "workflow_message": "Order received, workflow started",
                "workflow_started_at": utc_now_iso(),
                "last_updated": utc_now_iso(),
            },
        )
    except Exception as exc:
        logger.error(f"Failed to trigger workflow for order {order_id}: {exc!r}")
        try:
            await orders.update_metadata(
                order_id,
                {"workflow_error": str(exc), "last_updated": utc_now_iso()},
            )
        except Exception as record_exc:
            logger.error(
                f"Could not record workflow error on order {order_id}: {record_exc!r}"
            )
        raise

    logger.info(f"Workflow triggered for order {order_id}")
    return instance
