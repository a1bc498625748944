"""HTTP endpoints the storefront exposes to the task workers.

Usage:
    uvicorn orderflow.storefront.api:app --port 9000
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, FastAPI
from fastapi.responses import JSONResponse

from ..constants import WorkflowStatus
from ..contracts import (
    LegacyUpdateRequest,
    OrderPlacedRequest,
    WorkflowUpdateRequest,
    utc_now_iso,
)
from ..errors import OrderAlreadyExists, OrderNotFound
from ..trigger import ProcessTrigger
from .orders import InMemoryOrderRepository, OrderRecord, OrderRepository
from .subscribers import on_order_placed

logger = logging.getLogger(__name__)

WORKFLOW_STEPS = [
    {
        "key": WorkflowStatus.STARTED.value,
        "name": "Order Received",
        "description": "Your order has been received and is being processed",
    },
    {
        "key": WorkflowStatus.PAYMENT_VERIFIED.value,
        "name": "Payment Confirmed",
        "description": "Payment has been verified successfully",
    },
    {
        "key": WorkflowStatus.INVENTORY_RESERVED.value,
        "name": "Items Reserved",
        "description": "Inventory has been reserved for your order",
    },
    {
        "key": WorkflowStatus.COMPLETED.value,
        "name": "Order Complete",
        "description": "Your order is complete and ready for shipping",
    },
]


def _error(status_code: int, error: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, **extra})


def _internal_error(exc: Exception) -> JSONResponse:
    return _error(500, "Internal server error", message=str(exc))


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


async def apply_workflow_update(
    repository: OrderRepository, order_id: str, status: str, message: Optional[str]
) -> None:
    """Write a stage into order metadata; ``completed`` also closes the order."""
    await repository.update_metadata(
        order_id,
        {
            "workflow_status": status,
            "workflow_message": message or "",
            "last_updated": utc_now_iso(),
        },
    )
    if status == WorkflowStatus.COMPLETED.value:
        await repository.update_status(order_id, "completed")
        logger.info(f"Order completed: {order_id}")


def workflow_view(order_id: str, metadata: Dict[str, Any]) -> Dict[str, Any]:
    """Progress view of an order's workflow built from its metadata."""
    status = metadata.get("workflow_status") or "pending"
    keys = [step["key"] for step in WORKFLOW_STEPS]
    current = keys.index(status) if status in keys else -1

    steps = []
    for index, step in enumerate(WORKFLOW_STEPS):
        if current == -1 or index > current:
            step_status = "pending"
        elif index < current:
            step_status = "completed"
        else:
            step_status = "current"
        steps.append({**step, "status": step_status})

    total = len(WORKFLOW_STEPS)
    return {
        "order_id": order_id,
        "workflow": {
            "instance_id": metadata.get("workflow_instance"),
            "status": status,
            "message": metadata.get("workflow_message") or None,
            "error": metadata.get("workflow_error") or None,
            "started_at": metadata.get("workflow_started_at"),
            "last_updated": metadata.get("last_updated"),
        },
        "steps": steps,
        "progress": {
            "current": current + 1,
            "total": total,
            "percentage": round((current + 1) / total * 100),
        },
    }


def create_router(
    repository: OrderRepository, trigger: Optional[ProcessTrigger] = None
) -> APIRouter:
    router = APIRouter()

    @router.post("/store/orders", status_code=201)
    async def place_order(body: OrderPlacedRequest):
        """Record a placed order and start its workflow when a trigger is set."""
        if not body.id:
            return _error(400, "Missing or invalid id")

        try:
            await repository.create_order(
                OrderRecord(id=body.id, display_id=body.display_id)
            )
        except OrderAlreadyExists as exc:
            return _error(409, str(exc))

        instance_key = None
        if trigger is not None:
            try:
                instance = await on_order_placed(body.id, trigger, repository)
            except Exception as exc:
                return _internal_error(exc)
            instance_key = instance.process_instance_key

        return {"order_id": body.id, "workflow_instance": instance_key}

    @router.post("/store/orders/{order_id}/workflow-update")
    async def workflow_update(
        order_id: str, body: Optional[WorkflowUpdateRequest] = None
    ):
        status = body.status if body else None
        if not _is_text(status):
            return _error(400, "Missing or invalid status")

        logger.info(f"Workflow update: {order_id} -> {status}")
        try:
            await repository.retrieve_order(order_id)
        except OrderNotFound as exc:
            logger.error(str(exc))
            return _error(404, str(exc))

        try:
            await apply_workflow_update(repository, order_id, status, body.message)
        except Exception as exc:
            logger.exception(f"Error updating workflow for order {order_id}")
            return _internal_error(exc)

        return {"success": True, "order_id": order_id, "status": status}

    @router.get("/store/orders/{order_id}/workflow-status")
    async def workflow_status(order_id: str):
        try:
            order = await repository.retrieve_order(order_id)
        except OrderNotFound as exc:
            return _error(404, str(exc))
        return workflow_view(order_id, order.metadata)

    @router.post("/demo", deprecated=True)
    async def legacy_update(body: Optional[LegacyUpdateRequest] = None):
        """Older workers post here; new ones use the per-order endpoint."""
        order_id = body.orderId if body else None
        status = body.status if body else None
        if not _is_text(order_id):
            return _error(400, "Missing or invalid orderId")
        if not _is_text(status):
            return _error(400, "Missing or invalid status")

        logger.info(f"Legacy workflow update: {order_id} -> {status}")
        try:
            await repository.retrieve_order(order_id)
        except OrderNotFound as exc:
            return _error(404, str(exc))

        try:
            await apply_workflow_update(repository, order_id, status, body.message)
        except Exception as exc:
            logger.exception(f"Error updating workflow for order {order_id}")
            return _internal_error(exc)

        return {"success": True, "orderId": order_id, "status": status}

    @router.get("/demo", deprecated=True)
    async def legacy_health():
        return {
            "status": "POC API ready (deprecated - use /health)",
            "timestamp": utc_now_iso(),
            "notice": (
                "This endpoint is deprecated. Use "
                "/store/orders/:id/workflow-update for workflow updates."
            ),
        }

    @router.get("/health")
    async def health():
        return {"status": "ok"}

    return router


def create_app(
    repository: Optional[OrderRepository] = None,
    trigger: Optional[ProcessTrigger] = None,
) -> FastAPI:
    """Build the storefront app.

    With a ``trigger``, ``POST /store/orders`` also starts the fulfilment
    workflow for each new order.
    """
    repository = repository or InMemoryOrderRepository()
    app = FastAPI(title="orderflow storefront")
    app.state.orders = repository
    app.include_router(create_router(repository, trigger))
    return app


app = create_app()
