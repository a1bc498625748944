"""Task workers for the order fulfilment process."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Iterable, Optional

from .config import OrderflowConfig
from .constants import (
    JOB_FAIL_RETRIES,
    JOB_FAIL_RETRY_BACKOFF_MS,
    PROCESS_SEQUENCE,
    STAGE_NAMES,
    TaskType,
    WorkflowStatus,
)
from .contracts import JobFailure, JobResult, JobState, TaskJob, utc_now_iso
from .engine import BaseEngine
from .errors import (
    InsufficientInventory,
    PaymentVerificationFailed,
    ReservationFailed,
)
from .notifier import SlackNotifier
from .reporter import StatusReporter
from .simulation import FulfilmentSimulator
from .utils.retry import Sleep, compute_backoff

logger = logging.getLogger(__name__)

# Polling backoff stops growing at 2**4 seconds.
MAX_POLL_BACKOFF_STEP = 5

Compensation = Callable[[TaskJob, InsufficientInventory], Awaitable[None]]


class WorkerContext:
    """Collaborators shared by every task handler in a process."""

    def __init__(
        self,
        reporter: StatusReporter,
        notifier: SlackNotifier,
        simulator: Optional[FulfilmentSimulator] = None,
        on_insufficient_inventory: Optional[Compensation] = None,
    ) -> None:
        self.reporter = reporter
        self.notifier = notifier
        self.simulator = simulator or FulfilmentSimulator()
        self.on_insufficient_inventory = on_insufficient_inventory

    @classmethod
    def from_config(cls, config: OrderflowConfig, **kwargs: Any) -> "WorkerContext":
        return cls(
            reporter=StatusReporter.from_config(config.storefront),
            notifier=SlackNotifier.from_config(config.slack),
            simulator=FulfilmentSimulator(config.simulation),
            **kwargs,
        )

    async def aclose(self) -> None:
        await self.reporter.aclose()
        await self.notifier.aclose()


# ----------------------------------------------------------------------
# Handlers: do the work, report the stage, notify, return job variables.


async def verify_payment(job: TaskJob, ctx: WorkerContext) -> Dict[str, Any]:
    order_id = job.order_id
    # TODO: query the payment provider for the order's payment intent once
    # orders carry one.
    if not await ctx.simulator.verify_payment(order_id):
        raise PaymentVerificationFailed(order_id)

    await ctx.reporter.update_order(
        order_id, WorkflowStatus.PAYMENT_VERIFIED, "Payment verified successfully"
    )
    await ctx.notifier.payment_verified(order_id)
    return {"paymentVerified": True, "verifiedAt": utc_now_iso()}


async def reserve_inventory(job: TaskJob, ctx: WorkerContext) -> Dict[str, Any]:
    order_id = job.order_id
    availability = await ctx.simulator.check_inventory(order_id)
    if not availability.available:
        raise InsufficientInventory(order_id)

    warehouse = availability.warehouse
    if not await ctx.simulator.reserve_inventory(order_id, warehouse):
        raise ReservationFailed(order_id, warehouse)
    await ctx.simulator.finish_reservation(order_id)

    await ctx.reporter.update_order(
        order_id,
        WorkflowStatus.INVENTORY_RESERVED,
        f"Inventory reserved at {warehouse} warehouse",
    )
    await ctx.notifier.inventory_reserved(order_id, warehouse)
    return {
        "inventoryReserved": True,
        "warehouse": warehouse,
        "reservedAt": utc_now_iso(),
    }


async def send_notification(job: TaskJob, ctx: WorkerContext) -> Dict[str, Any]:
    order_id = job.order_id
    warehouse = job.variables.get("warehouse")
    await ctx.simulator.notify_customer(order_id)

    message = "Customer notified - Order complete!"
    if warehouse:
        message += f" Shipping from {warehouse}"
    await ctx.reporter.update_order(order_id, WorkflowStatus.COMPLETED, message)
    await ctx.notifier.order_completed(order_id)
    return {"notificationSent": True, "sentAt": utc_now_iso()}


TaskHandler = Callable[[TaskJob, WorkerContext], Awaitable[Dict[str, Any]]]

TASK_HANDLERS: Dict[TaskType, TaskHandler] = {
    TaskType.VERIFY_PAYMENT: verify_payment,
    TaskType.RESERVE_INVENTORY: reserve_inventory,
    TaskType.SEND_NOTIFICATION: send_notification,
}


# ----------------------------------------------------------------------


class OrderLocks:
    """One ``asyncio.Lock`` per order id, dropped once nobody holds it."""

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = defaultdict(int)

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, order_id: Optional[str]) -> AsyncIterator[None]:
        key = str(order_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                self._locks.pop(key, None)


class TaskWorker:
    """Polls the engine for one task type and runs each job to a signal."""

    def __init__(
        self,
        engine: BaseEngine,
        task_type: TaskType,
        context: WorkerContext,
        handler: Optional[TaskHandler] = None,
        locks: Optional[OrderLocks] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._engine = engine
        self.task_type = TaskType(task_type)
        self._context = context
        self._handler = handler or TASK_HANDLERS[self.task_type]
        self._locks = locks
        self._sleep = sleep
        self.completed = 0
        self.failed = 0
        self.poll_errors = 0

    @property
    def stage(self) -> str:
        return STAGE_NAMES[self.task_type]

    async def start(self, lifespan: Optional[float] = None) -> None:
        """Handle jobs until ``lifespan`` seconds pass (forever if None).

        Errors while polling the engine are logged and polling resumes after
        a backoff, so a gateway outage never stops the worker.
        """
        logger.info(f"Worker for {self.task_type.value} listening for jobs")
        loop = asyncio.get_running_loop()
        deadline = loop.time() + lifespan if lifespan is not None else None
        poll_failures = 0

        while True:
            remaining = deadline - loop.time() if deadline is not None else None
            if remaining is not None and remaining <= 0:
                return
            try:
                async for job in self._engine.activate_jobs(
                    self.task_type.value, lifespan=remaining
                ):
                    poll_failures = 0
                    await self._dispatch(job)
                return
            except Exception as exc:
                poll_failures += 1
                self.poll_errors += 1
                delay = compute_backoff(min(poll_failures, MAX_POLL_BACKOFF_STEP))
                if deadline is not None:
                    delay = max(0.0, min(delay, deadline - loop.time()))
                logger.warning(
                    f"Polling {self.task_type.value} jobs failed: {exc!r}; "
                    f"retrying in {delay:.1f}s"
                )
                await self._sleep(delay)

    async def _dispatch(self, job: TaskJob) -> None:
        try:
            if self._locks is not None:
                async with self._locks.hold(job.order_id):
                    await self.handle(job)
            else:
                await self.handle(job)
        except Exception:
            logger.exception(
                f"[{job.key}] Could not signal {self.task_type.value} outcome to engine"
            )

    async def handle(self, job: TaskJob) -> JobResult:
        order_id = job.order_id
        logger.info(f"[{job.key}] {self.stage} started for order {order_id}")
        logger.debug(f"[{job.key}] {JobState.RECEIVED.value} -> {JobState.WORKING.value}")

        try:
            variables = await self._handler(job, self._context)
        except Exception as exc:
            return await self._fail(job, exc)

        await self._engine.complete_job(job, variables)
        self.completed += 1
        logger.info(f"[{job.key}] {self.stage} completed for order {order_id}")
        return JobResult(job_key=job.key, state=JobState.COMPLETED, variables=variables)

    async def _fail(self, job: TaskJob, exc: Exception) -> JobResult:
        order_id = job.order_id
        error_message = str(exc) or f"{self.stage} failed"
        logger.error(
            f"[{job.key}] {self.stage} failed for order {order_id}: {error_message}"
        )

        compensate = self._context.on_insufficient_inventory
        if isinstance(exc, InsufficientInventory) and compensate is not None:
            try:
                await compensate(job, exc)
            except Exception as comp_exc:
                logger.error(
                    f"[{job.key}] Compensation for order {order_id} failed: {comp_exc!r}"
                )

        await self._context.notifier.workflow_error(order_id, self.stage, error_message)

        failure = JobFailure(
            error_message=error_message,
            retries=JOB_FAIL_RETRIES,
            retry_back_off=JOB_FAIL_RETRY_BACKOFF_MS,
        )
        await self._engine.fail_job(job, failure)
        self.failed += 1
        return JobResult(job_key=job.key, state=JobState.FAILED, failure=failure)


class WorkerPool:
    """Runs one ``TaskWorker`` per task type against a shared engine.

    Workers share an ``OrderLocks`` table so two stages of the same order do
    not run at the same time within this process.
    """

    def __init__(
        self,
        engine: BaseEngine,
        context: WorkerContext,
        task_types: Iterable[TaskType] = PROCESS_SEQUENCE,
    ) -> None:
        self.engine = engine
        self.context = context
        self.locks = OrderLocks()
        self.workers = [
            TaskWorker(engine, task_type, context, locks=self.locks)
            for task_type in task_types
        ]

    async def run(self, lifespan: Optional[float] = None) -> None:
        await asyncio.gather(*(worker.start(lifespan) for worker in self.workers))
