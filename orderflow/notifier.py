"""Slack notifications for order workflow progress.

Messages are fire-and-forget: a Slack outage must never block, fail or retry
the workflow, so every delivery error is logged and dropped here.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from .config import SlackConfig
from .constants import DEFAULT_HTTP_TIMEOUT
from .contracts import SlackMessage

logger = logging.getLogger(__name__)


class NotificationEvent(str, Enum):
    PAYMENT_VERIFIED = "payment_verified"
    INVENTORY_RESERVED = "inventory_reserved"
    ORDER_COMPLETED = "order_completed"
    WORKFLOW_ERROR = "workflow_error"


def _section(text: str) -> Dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def _context(text: str) -> Dict[str, Any]:
    return {"type": "context", "elements": [{"type": "mrkdwn", "text": text}]}


def order_link(admin_url: str, order_id: str, display_id: Optional[str] = None) -> str:
    """Slack mrkdwn link to the order in the admin dashboard."""
    display = display_id or order_id[:8]
    return f"<{admin_url.rstrip('/')}/orders/{order_id}|#{display}>"


def build_message(
    event: NotificationEvent,
    order_id: str,
    admin_url: str,
    display_id: Optional[str] = None,
    warehouse: Optional[str] = None,
    stage: Optional[str] = None,
    error_message: Optional[str] = None,
) -> SlackMessage:
    """Render the Slack payload for ``event``."""
    link = order_link(admin_url, order_id, display_id)
    label = display_id or order_id

    if event is NotificationEvent.PAYMENT_VERIFIED:
        return SlackMessage(
            text=f"Payment verified for Order {label}",
            blocks=[
                _section(
                    f"💳 *Payment Verified*\n\nOrder {link} payment has been "
                    "successfully verified."
                ),
                _context("⏱️ Workflow Stage: *1 of 3* | Next: Reserve Inventory"),
            ],
        )
    if event is NotificationEvent.INVENTORY_RESERVED:
        return SlackMessage(
            text=f"Inventory reserved for Order {label}",
            blocks=[
                _section(
                    f"📦 *Inventory Reserved*\n\nOrder {link} inventory has been "
                    f"reserved at *{warehouse}* warehouse."
                ),
                _context("⏱️ Workflow Stage: *2 of 3* | Next: Send Notification"),
            ],
        )
    if event is NotificationEvent.ORDER_COMPLETED:
        return SlackMessage(
            text=f"Order {label} workflow completed!",
            blocks=[
                _section(
                    f"🎉 *Order Complete!*\n\nOrder {link} has completed all "
                    "workflow stages and customer has been notified."
                ),
                _context("✅ Workflow Stage: *3 of 3* | Status: Complete"),
            ],
        )
    if event is NotificationEvent.WORKFLOW_ERROR:
        return SlackMessage(
            text=f"⚠️ Workflow error for Order {label}",
            blocks=[
                _section(
                    f"🚨 *Workflow Error*\n\nOrder {link} encountered an error "
                    f"during *{stage}*."
                ),
                _section(f"```{error_message}```"),
                _context("❌ Manual intervention may be required"),
            ],
        )
    raise ValueError(f"Unsupported notification event: {event}")


class SlackNotifier:
    """Posts workflow progress to a Slack incoming webhook."""

    def __init__(
        self,
        webhook_url: Optional[str],
        admin_url: str = "http://localhost:9000/app",
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._webhook_url = webhook_url
        self._admin_url = admin_url
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client

    @classmethod
    def from_config(
        cls, config: SlackConfig, client: Optional[httpx.AsyncClient] = None
    ) -> "SlackNotifier":
        return cls(
            config.webhook_url,
            admin_url=config.admin_url,
            timeout=config.timeout,
            client=client,
        )

    @property
    def enabled(self) -> bool:
        return bool(self._webhook_url)

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send(self, message: SlackMessage) -> None:
        if not self.enabled:
            logger.info("Slack webhook not configured, skipping notification")
            return

        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)

        try:
            response = await self._client.post(
                self._webhook_url,
                json=message.model_dump(),
                timeout=self._timeout,
            )
            response.raise_for_status()
            logger.info("Slack notification sent")
        except Exception as exc:
            logger.error(f"Failed to send Slack notification: {exc!r}")

    async def notify(
        self, event: NotificationEvent, order_id: str, **details: Any
    ) -> None:
        """Build and send the message for ``event``. Never raises."""
        try:
            message = build_message(
                NotificationEvent(event), order_id, self._admin_url, **details
            )
        except Exception as exc:
            logger.error(f"Failed to build Slack notification {event}: {exc!r}")
            return
        await self.send(message)

    async def payment_verified(
        self, order_id: str, display_id: Optional[str] = None
    ) -> None:
        await self.notify(
            NotificationEvent.PAYMENT_VERIFIED, order_id, display_id=display_id
        )

    async def inventory_reserved(
        self, order_id: str, warehouse: str, display_id: Optional[str] = None
    ) -> None:
        await self.notify(
            NotificationEvent.INVENTORY_RESERVED,
            order_id,
            warehouse=warehouse,
            display_id=display_id,
        )

    async def order_completed(
        self, order_id: str, display_id: Optional[str] = None
    ) -> None:
        await self.notify(
            NotificationEvent.ORDER_COMPLETED, order_id, display_id=display_id
        )

    async def workflow_error(
        self,
        order_id: str,
        stage: str,
        error_message: str,
        display_id: Optional[str] = None,
    ) -> None:
        await self.notify(
            NotificationEvent.WORKFLOW_ERROR,
            order_id,
            stage=stage,
            error_message=error_message,
            display_id=display_id,
        )
