"""orderflow: BPMN task workers that drive storefront order fulfilment."""

from .constants import TaskType, WorkflowStatus
from .contracts import JobFailure, ProcessInstance, TaskJob, UpdateRoute
from .engine import get_engine
from .notifier import NotificationEvent, SlackNotifier
from .reporter import StatusReporter
from .trigger import ProcessTrigger
from .workers import TASK_HANDLERS, TaskWorker, WorkerContext, WorkerPool

__version__ = "0.1.0"
__all__ = [
    "JobFailure",
    "NotificationEvent",
    "ProcessInstance",
    "ProcessTrigger",
    "SlackNotifier",
    "StatusReporter",
    "TASK_HANDLERS",
    "TaskJob",
    "TaskType",
    "TaskWorker",
    "UpdateRoute",
    "WorkerContext",
    "WorkerPool",
    "WorkflowStatus",
    "get_engine",
]
