"""In-memory engine for tests and local runs."""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections import defaultdict, deque
from typing import Any, AsyncIterator, Deque, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from ..constants import ORDER_PROCESS_ID, PROCESS_SEQUENCE, TaskType
from ..contracts import JobFailure, ProcessInstance, TaskJob
from ..errors import EngineError
from .base import BaseEngine

logger = logging.getLogger(__name__)


class InstanceRecord(BaseModel):
    """State of one process instance inside the in-memory engine."""

    key: str
    bpmn_process_id: str
    variables: Dict[str, Any] = Field(default_factory=dict)
    position: int = 0
    status: str = "active"  # active, completed, incident


class InMemoryEngine(BaseEngine):
    """Runs straight-line process definitions made of service tasks.

    Each definition is a sequence of task types. Completing a job merges its
    variables into the instance and activates the next task. Failing a job
    with retries left re-queues it after the back-off; with none left the
    instance is parked in ``incident``.
    """

    def __init__(
        self,
        definitions: Optional[Dict[str, Sequence[TaskType]]] = None,
        poll_interval: float = 0.1,
    ) -> None:
        self._definitions = definitions or {ORDER_PROCESS_ID: PROCESS_SEQUENCE}
        self._poll_interval = poll_interval
        self._queues: Dict[str, Deque[Tuple[float, TaskJob]]] = defaultdict(deque)
        self._active: Dict[str, TaskJob] = {}
        self._lock = asyncio.Lock()
        self._instance_ids = itertools.count(1)
        self._job_ids = itertools.count(1)
        self.instances: Dict[str, InstanceRecord] = {}
        self.completed: List[Tuple[TaskJob, Dict[str, Any]]] = []
        self.failures: List[Tuple[TaskJob, JobFailure]] = []

    def _now(self) -> float:
        return asyncio.get_event_loop().time()

    def _enqueue(self, instance: InstanceRecord, not_before: float = 0.0) -> None:
        task_type = self._definitions[instance.bpmn_process_id][instance.position]
        job = TaskJob(
            key=f"job_{next(self._job_ids)}",
            type=task_type,
            process_instance_key=instance.key,
            variables=dict(instance.variables),
        )
        self._queues[task_type.value].append((not_before, job))

    async def create_process_instance(
        self, bpmn_process_id: str, variables: Dict[str, Any]
    ) -> ProcessInstance:
        if bpmn_process_id not in self._definitions:
            raise EngineError(f"Unknown process definition: {bpmn_process_id}")

        key = f"pik_{next(self._instance_ids)}"
        instance = InstanceRecord(
            key=key, bpmn_process_id=bpmn_process_id, variables=dict(variables)
        )
        async with self._lock:
            self.instances[key] = instance
            self._enqueue(instance)
        logger.info(f"Started process instance {key} of {bpmn_process_id}")
        return ProcessInstance(
            process_instance_key=key,
            bpmn_process_id=bpmn_process_id,
            variables=dict(variables),
        )

    async def _next_due(self, task_type: str) -> Optional[TaskJob]:
        async with self._lock:
            queue = self._queues[task_type]
            now = self._now()
            for index, (not_before, job) in enumerate(queue):
                if not_before <= now:
                    del queue[index]
                    self._active[job.key] = job
                    return job
        return None

    async def activate_jobs(
        self, task_type: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[TaskJob]:
        task_type = getattr(task_type, "value", task_type)
        start_time = self._now() if lifespan is not None else None

        while True:
            if lifespan is not None and start_time is not None:
                if self._now() - start_time >= lifespan:
                    break

            job = await self._next_due(task_type)
            if job is not None:
                yield job
                continue

            await asyncio.sleep(self._poll_interval)

    async def _take_active(self, job: TaskJob) -> Tuple[TaskJob, InstanceRecord]:
        active = self._active.pop(job.key, None)
        if active is None:
            raise EngineError(f"Job {job.key} is not active")
        return active, self.instances[active.process_instance_key]

    async def complete_job(self, job: TaskJob, variables: Dict[str, Any]) -> None:
        async with self._lock:
            active, instance = await self._take_active(job)
            self.completed.append((active, dict(variables)))
            instance.variables.update(variables)
            instance.position += 1
            if instance.position >= len(self._definitions[instance.bpmn_process_id]):
                instance.status = "completed"
                logger.info(f"Process instance {instance.key} completed")
            else:
                self._enqueue(instance)

    async def fail_job(self, job: TaskJob, failure: JobFailure) -> None:
        async with self._lock:
            active, instance = await self._take_active(job)
            self.failures.append((active, failure))
            if failure.retries > 0:
                retry = active.model_copy(update={"retries": failure.retries})
                not_before = self._now() + failure.retry_back_off / 1000
                self._queues[active.type.value].append((not_before, retry))
            else:
                instance.status = "incident"
                logger.warning(
                    f"Process instance {instance.key} raised an incident: "
                    f"{failure.error_message}"
                )
