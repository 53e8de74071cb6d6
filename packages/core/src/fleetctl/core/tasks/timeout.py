"""超时清扫 -- 把超过声明时限的 assigned / running 任务置为 failed

单向、无重试：超时任务直接进入终态。
写入带 expected_status 校验，重复清扫不会二次处理同一任务。
"""

from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from ..audit import AuditSink, record_audit
from ..exceptions import TaskStatusConflictError
from ..models.enums import DISPATCHABLE_STATES, AuditAction, TaskStatus
from ..models.task import Task
from ..store import StoreGroup

log = structlog.get_logger()


def elapsed_seconds(task: Task, now: datetime) -> float:
    """从分配时间（缺失时退回创建时间）到 now 的秒数"""
    started = task.assigned_at or task.created_at
    return (now - started).total_seconds()


def is_overdue(task: Task, now: datetime) -> bool:
    if task.status not in DISPATCHABLE_STATES or not task.timeout_seconds:
        return False
    return elapsed_seconds(task, now) > task.timeout_seconds


class TimeoutEnforcer:
    """超时清扫器"""

    def __init__(
        self,
        stores: StoreGroup,
        audit: AuditSink | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._stores = stores
        self._audit = audit
        self._clock = clock or (lambda: datetime.now(UTC))

    async def sweep(self) -> int:
        """执行一次清扫，返回本次超时的任务数"""
        now = self._clock()
        candidates: list[Task] = []
        for status in (TaskStatus.ASSIGNED, TaskStatus.RUNNING):
            candidates += await self._stores.task_store.list_tasks(status=status.value)

        timed_out = 0
        for task in candidates:
            if not is_overdue(task, now):
                continue
            if await self._expire(task, now):
                timed_out += 1

        if timed_out:
            log.info("timeout_sweep_done", timed_out=timed_out)
        return timed_out

    async def _expire(self, task: Task, now: datetime) -> bool:
        elapsed = int(elapsed_seconds(task, now))
        message = f"Task timed out after {task.timeout_seconds}s (elapsed: {elapsed}s)"

        try:
            async with self._stores.transaction():
                updated = await self._stores.task_store.update_task(
                    task.task_id,
                    {
                        "status": TaskStatus.FAILED,
                        "error": message,
                        "completed_at": now,
                    },
                    expected_status=task.status,
                )
        except TaskStatusConflictError:
            log.info("timeout_skip_state_changed", task_id=task.task_id)
            return False

        if updated is None:
            return False

        log.warning(
            "task_timed_out",
            task_id=task.task_id,
            timeout_s=task.timeout_seconds,
            elapsed_s=elapsed,
        )
        await record_audit(
            self._audit,
            AuditAction.TASK_FAIL,
            subject_id=task.assigned_to,
            subject_name=task.assigned_to_name,
            detail={
                "task_id": task.task_id,
                "reason": "timeout",
                "timeout_seconds": task.timeout_seconds,
                "elapsed_seconds": elapsed,
            },
            success=True,
        )
        return True
