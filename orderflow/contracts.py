"""Message contracts exchanged with the engine, the storefront and Slack."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .constants import JOB_FAIL_RETRIES, JOB_FAIL_RETRY_BACKOFF_MS, TaskType


def utc_now_iso() -> str:
    """ISO-8601 timestamp in UTC with a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ProcessInstance(BaseModel):
    """A started instance of a process definition."""

    process_instance_key: str
    bpmn_process_id: str
    variables: Dict[str, Any] = Field(default_factory=dict)


class TaskJob(BaseModel):
    """One unit of work handed to a worker by the engine."""

    key: str
    type: TaskType
    process_instance_key: Optional[str] = None
    variables: Dict[str, Any] = Field(default_factory=dict)
    retries: int = JOB_FAIL_RETRIES

    @property
    def order_id(self) -> Optional[str]:
        return self.variables.get("orderId")


class JobFailure(BaseModel):
    """Failure signal sent to the engine for a job."""

    model_config = ConfigDict(populate_by_name=True)

    error_message: str = Field(alias="errorMessage")
    retries: int = JOB_FAIL_RETRIES
    retry_back_off: int = Field(default=JOB_FAIL_RETRY_BACKOFF_MS, alias="retryBackOff")


class JobState(str, Enum):
    RECEIVED = "received"
    WORKING = "working"
    REPORTING = "reporting"
    COMPLETED = "completed"
    FAILED = "failed"


class JobResult(BaseModel):
    """Outcome of handling one job inside a worker."""

    job_key: str
    state: JobState
    variables: Dict[str, Any] = Field(default_factory=dict)
    failure: Optional[JobFailure] = None


class UpdateRoute(str, Enum):
    """Which storefront endpoint accepted (or should receive) an update."""

    PRIMARY = "primary"
    FALLBACK = "fallback"
    FAILED = "failed"


class WorkflowUpdateRequest(BaseModel):
    """Body of ``POST /store/orders/{id}/workflow-update``."""

    status: Any = None
    message: Optional[str] = None


class LegacyUpdateRequest(BaseModel):
    """Body of the deprecated ``POST /demo`` endpoint."""

    orderId: Any = None
    status: Any = None
    message: Optional[str] = None


class SlackMessage(BaseModel):
    """Slack incoming-webhook payload: fallback text plus Block Kit blocks."""

    text: str
    blocks: List[Dict[str, Any]] = Field(default_factory=list)


class OrderPlacedRequest(BaseModel):
    """Body of ``POST /store/orders``."""

    id: str
    display_id: Optional[str] = None
