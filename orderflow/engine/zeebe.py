"""Camunda 8 / Zeebe engine client built on pyzeebe."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

try:
    from pyzeebe import (
        ZeebeClient,
        create_insecure_channel,
        create_oauth2_client_credentials_channel,
    )
    from pyzeebe.grpc_internals.zeebe_adapter import ZeebeAdapter
except ImportError:  # pragma: no cover - pyzeebe not installed
    ZeebeClient = None  # type: ignore
    ZeebeAdapter = None  # type: ignore

from ..config import WorkerConfig, ZeebeConfig
from ..constants import TaskType
from ..contracts import JobFailure, ProcessInstance, TaskJob
from ..utils.retry import Sleep, compute_backoff
from .base import BaseEngine

logger = logging.getLogger(__name__)

# Long-poll window for one ActivateJobs request.
ACTIVATE_REQUEST_TIMEOUT_MS = 1000
MAX_POLL_BACKOFF_STEP = 5


class ZeebeEngine(BaseEngine):
    """gRPC client for a Zeebe broker (self-managed or Camunda SaaS)."""

    def __init__(
        self,
        config: ZeebeConfig,
        worker: Optional[WorkerConfig] = None,
        poll_interval: float = 0.1,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if ZeebeClient is None or ZeebeAdapter is None:
            raise ImportError("pyzeebe package is required for ZeebeEngine")
        if not config.address:
            raise ValueError("ZEEBE_ADDRESS must be set for the zeebe engine")

        self.config = config
        self.worker = worker or WorkerConfig()
        self._poll_interval = poll_interval
        self._sleep = sleep
        self._channel: Optional[Any] = None
        self._client: Optional[Any] = None
        self._adapter: Optional[Any] = None

    async def connect(self) -> None:
        if self._channel is not None:
            return
        if self.config.insecure:
            self._channel = create_insecure_channel(grpc_address=self.config.address)
        else:
            self._channel = create_oauth2_client_credentials_channel(
                grpc_address=self.config.address,
                client_id=self.config.client_id,
                client_secret=self.config.client_secret,
                authorization_server=self.config.oauth_url,
                audience=self.config.audience,
            )
        self._client = ZeebeClient(self._channel)
        self._adapter = ZeebeAdapter(self._channel)
        logger.info(f"Connected to Zeebe at {self.config.address}")

    async def disconnect(self) -> None:
        if self._channel is not None:
            await self._channel.close()
        self._channel = None
        self._client = None
        self._adapter = None

    async def create_process_instance(
        self, bpmn_process_id: str, variables: Dict[str, Any]
    ) -> ProcessInstance:
        if self._client is None:
            await self.connect()
        result = await self._client.run_process(
            bpmn_process_id=bpmn_process_id, variables=variables
        )
        key = getattr(result, "process_instance_key", result)
        return ProcessInstance(
            process_instance_key=str(key),
            bpmn_process_id=bpmn_process_id,
            variables=variables,
        )

    async def _poll(self, task_type: str) -> List[TaskJob]:
        jobs = []
        async for raw in self._adapter.activate_jobs(
            task_type=task_type,
            worker=self.worker.name,
            timeout=self.worker.job_timeout_ms,
            max_jobs_to_activate=self.worker.max_jobs,
            variables_to_fetch=[],
            request_timeout=ACTIVATE_REQUEST_TIMEOUT_MS,
        ):
            jobs.append(self._to_task_job(raw))
        return jobs

    @staticmethod
    def _to_task_job(raw: Any) -> TaskJob:
        return TaskJob(
            key=str(raw.key),
            type=TaskType(raw.type),
            process_instance_key=str(raw.process_instance_key),
            variables=dict(raw.variables or {}),
            retries=raw.retries,
        )

    async def activate_jobs(
        self, task_type: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[TaskJob]:
        if self._adapter is None:
            await self.connect()
        task_type = getattr(task_type, "value", task_type)
        loop = asyncio.get_running_loop()
        start_time = loop.time()
        failures = 0

        while True:
            if lifespan is not None and loop.time() - start_time >= lifespan:
                break

            try:
                jobs = await self._poll(task_type)
            except Exception as exc:
                # Gateway outages and back-pressure are transient.
                failures += 1
                delay = compute_backoff(min(failures, MAX_POLL_BACKOFF_STEP))
                logger.warning(
                    f"Activating {task_type} jobs failed: {exc!r}; "
                    f"retrying in {delay:.1f}s"
                )
                await self._sleep(delay)
                continue

            failures = 0
            for job in jobs:
                yield job
            if not jobs:
                await self._sleep(self._poll_interval)

    async def complete_job(self, job: TaskJob, variables: Dict[str, Any]) -> None:
        await self._adapter.complete_job(job_key=int(job.key), variables=variables)

    async def fail_job(self, job: TaskJob, failure: JobFailure) -> None:
        await self._adapter.fail_job(
            job_key=int(job.key),
            retries=failure.retries,
            message=failure.error_message,
            retry_back_off_ms=failure.retry_back_off,
            variables={},
        )
