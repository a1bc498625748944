"""Start order fulfilment process instances."""

from __future__ import annotations

import logging

from .constants import ORDER_PROCESS_ID
from .contracts import ProcessInstance, utc_now_iso
from .engine import BaseEngine

logger = logging.getLogger(__name__)


class ProcessTrigger:
    """Starts one ``order-fulfillment-poc`` instance per placed order."""

    def __init__(self, engine: BaseEngine, bpmn_process_id: str = ORDER_PROCESS_ID) -> None:
        self._engine = engine
        self.bpmn_process_id = bpmn_process_id

    async def start_order_workflow(self, order_id: str) -> ProcessInstance:
        """Create a process instance with ``{orderId, timestamp}`` variables.

        Engine errors propagate unchanged; recording them on the order is the
        caller's job.
        """
        if not order_id:
            raise ValueError("order_id must be a non-empty string")

        logger.info(f"Starting workflow for order {order_id}")
        instance = await self._engine.create_process_instance(
            self.bpmn_process_id,
            {"orderId": order_id, "timestamp": utc_now_iso()},
        )
        logger.info(
            f"Workflow started for order {order_id}: {instance.process_instance_key}"
        )
        return instance
