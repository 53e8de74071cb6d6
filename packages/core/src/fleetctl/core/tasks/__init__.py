"""fleetctl Core Tasks -- 路由、派发、超时与任务编排"""

from .dispatch import NOT_FOUND_SENTINEL, DispatchChannel, TaskPaths, build_task_document
from .orchestrator import TaskOrchestrator
from .outcomes import DispatchOutcome, DispatchStatus, PollOutcome, PollStatus
from .routing import RouteResult, best_route, preview_task, route_task, score_worker
from .timeout import TimeoutEnforcer

__all__ = [
    "TaskOrchestrator",
    "DispatchChannel",
    "TaskPaths",
    "build_task_document",
    "NOT_FOUND_SENTINEL",
    "DispatchOutcome",
    "DispatchStatus",
    "PollOutcome",
    "PollStatus",
    "RouteResult",
    "score_worker",
    "route_task",
    "best_route",
    "preview_task",
    "TimeoutEnforcer",
]
