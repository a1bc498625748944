"""Base client interface for the process orchestration engine."""

from __future__ import annotations

import abc
from typing import Any, AsyncIterator, Dict, Optional

from ..contracts import JobFailure, ProcessInstance, TaskJob


class BaseEngine(metaclass=abc.ABCMeta):
    """Abstract client for a BPMN engine that hands out service-task jobs."""

    async def connect(self) -> None:
        """Open connection to the engine (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Close connection to the engine (no-op by default)."""
        pass

    @abc.abstractmethod
    async def create_process_instance(
        self, bpmn_process_id: str, variables: Dict[str, Any]
    ) -> ProcessInstance:
        """Start a new instance of ``bpmn_process_id``."""
        raise NotImplementedError

    @abc.abstractmethod
    def activate_jobs(
        self, task_type: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[TaskJob]:
        """Yield jobs of ``task_type`` as the engine activates them.

        Args:
            task_type: The service task type to subscribe to
            lifespan: Maximum time in seconds to keep polling. If None, runs indefinitely.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def complete_job(self, job: TaskJob, variables: Dict[str, Any]) -> None:
        """Acknowledge successful completion and merge ``variables``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def fail_job(self, job: TaskJob, failure: JobFailure) -> None:
        """Report that the job failed, with retry hints for the engine."""
        raise NotImplementedError
