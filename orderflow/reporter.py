"""Post workflow stage updates to the storefront's order-update endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from .config import StorefrontConfig
from .constants import DEFAULT_HTTP_TIMEOUT, DEFAULT_UPDATE_RETRIES
from .contracts import UpdateRoute
from .utils.retry import Sleep, schedule_retry

logger = logging.getLogger(__name__)


def route_for(response: httpx.Response) -> UpdateRoute:
    """Decide what to do with a response from the primary update endpoint.

    A 404 means the storefront predates the per-order endpoint and the legacy
    ``/demo`` endpoint should be used instead.
    """
    if response.is_success:
        return UpdateRoute.PRIMARY
    if response.status_code == 404:
        return UpdateRoute.FALLBACK
    return UpdateRoute.FAILED


class StatusReporter:
    """Writes ``workflow_status`` / ``workflow_message`` into order metadata.

    Every attempt tries the per-order endpoint first and falls back to the
    legacy endpoint on 404. Failed attempts are retried with exponential
    backoff. Updates carry no idempotency key, the storefront applies them
    last-write-wins.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Sleep = asyncio.sleep,
        retries: int = DEFAULT_UPDATE_RETRIES,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self.retries = retries
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._sleep = sleep

    @classmethod
    def from_config(
        cls, config: StorefrontConfig, client: Optional[httpx.AsyncClient] = None
    ) -> "StatusReporter":
        return cls(
            config.base_url,
            timeout=config.timeout,
            client=client,
            retries=config.retries,
        )

    async def __aenter__(self) -> "StatusReporter":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def primary_url(self, order_id: str) -> str:
        return f"{self._base_url}/store/orders/{order_id}/workflow-update"

    @property
    def legacy_url(self) -> str:
        return f"{self._base_url}/demo"

    async def _attempt(self, order_id: str, status: str, message: str) -> UpdateRoute:
        response = await self._client.post(
            self.primary_url(order_id),
            json={"status": status, "message": message},
            timeout=self._timeout,
        )
        route = route_for(response)

        if route is UpdateRoute.PRIMARY:
            logger.info(f"Updated order {order_id} -> {status}")
        elif route is UpdateRoute.FALLBACK:
            legacy = await self._client.post(
                self.legacy_url,
                json={"orderId": order_id, "status": status, "message": message},
                timeout=self._timeout,
            )
            legacy.raise_for_status()
            logger.info(f"Updated order {order_id} -> {status} (legacy endpoint)")
        else:
            response.raise_for_status()
        return route

    async def update_order(
        self,
        order_id: str,
        status: str,
        message: str = "",
        retries: Optional[int] = None,
    ) -> UpdateRoute:
        """Report a workflow stage for ``order_id``.

        Args:
            order_id: Storefront order identifier.
            status: Stage label, usually a ``WorkflowStatus`` value.
            message: Human-readable status text.
            retries: Total number of attempts before giving up. Defaults to
                the reporter's ``retries`` (3).

        Returns:
            The endpoint that accepted the update.

        Raises:
            httpx.HTTPError: The error of the last attempt once all attempts
                have failed.
        """
        status = getattr(status, "value", status)
        retries = self.retries if retries is None else retries
        for attempt in range(1, retries + 1):
            try:
                return await self._attempt(order_id, status, message)
            except httpx.HTTPError as exc:
                response_status = (
                    exc.response.status_code
                    if isinstance(exc, httpx.HTTPStatusError)
                    else None
                )
                logger.warning(
                    f"Failed to update order {order_id} -> {status} "
                    f"(attempt {attempt}/{retries}): {exc!r} "
                    f"response_status={response_status}"
                )
                if attempt == retries:
                    raise
                await schedule_retry(attempt, sleep=self._sleep)

        raise ValueError("retries must be at least 1")
