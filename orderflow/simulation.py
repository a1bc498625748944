"""Stand-ins for the payment provider, inventory API and customer mailer.

Each call waits for a configured delay so workers behave like they would
against real services.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Optional, Sequence

from pydantic import BaseModel

from .config import SimulationConfig
from .constants import WAREHOUSES

logger = logging.getLogger(__name__)


class Availability(BaseModel):
    available: bool
    warehouse: str


class FulfilmentSimulator:
    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        warehouses: Sequence[str] = WAREHOUSES,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config or SimulationConfig()
        self.warehouses = tuple(warehouses)
        self._rng = rng or random.Random()

    async def verify_payment(self, order_id: str) -> bool:
        logger.info(f"Verifying payment for order {order_id}")
        await asyncio.sleep(self.config.payment_delay)
        return True

    async def check_inventory(self, order_id: str) -> Availability:
        logger.info(f"Checking inventory for order {order_id}")
        await asyncio.sleep(self.config.inventory_check_delay)
        available = self._rng.random() < self.config.inventory_pass_rate
        warehouse = self._rng.choice(self.warehouses)
        return Availability(available=available, warehouse=warehouse)

    async def reserve_inventory(self, order_id: str, warehouse: str) -> bool:
        logger.info(f"Reserving inventory at {warehouse} for order {order_id}")
        await asyncio.sleep(self.config.reservation_delay)
        return True

    async def finish_reservation(self, order_id: str) -> None:
        await asyncio.sleep(self.config.inventory_processing_delay)

    async def notify_customer(self, order_id: str) -> None:
        logger.info(f"Sending customer notification for order {order_id}")
        await asyncio.sleep(self.config.notification_delay)
