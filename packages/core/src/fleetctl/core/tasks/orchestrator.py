"""TaskOrchestrator -- 任务生命周期的组合根

把 store、路由、派发通道、超时清扫、policy 和审计组合在
create / assign / dispatch / poll / complete / fail / cancel 操作之后。

约定：
- 不存在返回 None，仍在运行 / policy 拒绝 / 传输失败以结果对象返回
- 对终态任务再操作抛 TaskTransitionError
- 存储异常向上传播，写入失败时回滚
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import structlog
from ulid import ULID

from fleetctl.remote import RemoteError

from ..audit import AuditSink, record_audit
from ..config import POLL_INTERVAL_S
from ..exceptions import TaskStatusConflictError, TaskTransitionError
from ..models.agent import Worker
from ..models.enums import (
    DISPATCHABLE_STATES,
    TERMINAL_STATES,
    AuditAction,
    TaskStatus,
    validate_transition,
)
from ..models.task import Task
from ..policy import PolicyEngine, enforce_policy
from ..store import StoreGroup
from . import routing
from .dispatch import DispatchChannel
from .outcomes import DispatchOutcome, DispatchStatus, PollOutcome, PollStatus
from .routing import RouteResult
from .timeout import TimeoutEnforcer

log = structlog.get_logger()

MANUAL_ASSIGNMENT_REASON = "manually assigned"

# 非运行态任务在轮询时直接映射为对应结果，不访问远端
_STATIC_POLL_STATUS = {
    TaskStatus.PENDING: PollStatus.PENDING,
    TaskStatus.COMPLETED: PollStatus.COMPLETED,
    TaskStatus.FAILED: PollStatus.FAILED,
    TaskStatus.CANCELLED: PollStatus.CANCELLED,
}


class TaskOrchestrator:
    """任务编排服务"""

    def __init__(
        self,
        stores: StoreGroup,
        channel: DispatchChannel,
        audit: AuditSink | None = None,
        policy: PolicyEngine | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._stores = stores
        self._channel = channel
        self._audit = audit
        self._policy = policy
        self._clock = clock or (lambda: datetime.now(UTC))
        self._timeouts = TimeoutEnforcer(stores, audit=audit, clock=self._clock)

    # ---- 创建与分配 ----

    async def create(
        self,
        title: str,
        description: str,
        requested_by: str,
        required_capabilities: list[str] | None = None,
        timeout_seconds: int | None = None,
    ) -> Task:
        """创建 pending 任务

        Raises:
            pydantic.ValidationError: 标题为空或超时非正数
        """
        task = Task(
            task_id=str(ULID()),
            title=title,
            description=description,
            requested_by=requested_by,
            required_capabilities=list(dict.fromkeys(required_capabilities or [])),
            timeout_seconds=timeout_seconds,
            status=TaskStatus.PENDING,
            created_at=self._clock(),
        )

        async with self._stores.transaction():
            await self._stores.task_store.create_task(task)

        log.info("task_created", task_id=task.task_id, title=task.title)
        await record_audit(
            self._audit,
            AuditAction.TASK_CREATE,
            detail={
                "task_id": task.task_id,
                "title": task.title,
                "requested_by": requested_by,
                "required_capabilities": task.required_capabilities,
            },
        )
        return task

    async def create_and_route(
        self,
        title: str,
        description: str,
        requested_by: str,
        roster: list[Worker],
        required_capabilities: list[str] | None = None,
        timeout_seconds: int | None = None,
        assign_to: Worker | None = None,
    ) -> tuple[Task, RouteResult | None]:
        """创建任务并自动分配

        指定 assign_to 时直接分配；否则取最佳路由；
        无匹配时任务保持 pending，第二个返回值为 None。
        """
        task = await self.create(
            title,
            description,
            requested_by,
            required_capabilities=required_capabilities,
            timeout_seconds=timeout_seconds,
        )

        if assign_to is not None:
            route = RouteResult(worker=assign_to, reason=MANUAL_ASSIGNMENT_REASON, score=0)
        else:
            route = routing.best_route(task, roster)
            if route is None:
                log.info("task_no_route", task_id=task.task_id)
                return task, None

        assigned = await self.assign(
            task.task_id,
            route.worker.agent_id,
            route.worker.name,
            route.reason,
        )
        return assigned or task, route

    async def assign(
        self,
        task_id: str,
        worker_id: str,
        worker_name: str,
        reason: str,
    ) -> Task | None:
        """分配（或重新分配）任务，只允许 pending / assigned

        Raises:
            TaskTransitionError: 任务已在运行或处于终态
        """
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            return None
        if task.status not in (TaskStatus.PENDING, TaskStatus.ASSIGNED):
            raise TaskTransitionError(task_id, task.status, TaskStatus.ASSIGNED)

        updated = await self._transition(
            task,
            TaskStatus.ASSIGNED,
            {
                "assigned_to": worker_id,
                "assigned_to_name": worker_name,
                "routing_reason": reason,
                "assigned_at": self._clock(),
            },
        )
        log.info("task_assigned", task_id=task_id, worker=worker_name, reason=reason)
        await record_audit(
            self._audit,
            AuditAction.TASK_ASSIGN,
            subject_id=worker_id,
            subject_name=worker_name,
            detail={"task_id": task_id, "reason": reason},
        )
        return updated

    # ---- 路由预览 ----

    def route(self, task: Task, roster: list[Worker]) -> list[RouteResult]:
        """路由预览，不修改任何状态"""
        return routing.route_task(task, roster)

    def best_route(self, task: Task, roster: list[Worker]) -> RouteResult | None:
        return routing.best_route(task, roster)

    # ---- 派发与轮询 ----

    async def dispatch(
        self,
        task_id: str,
        worker: Worker,
        confirmed: bool = False,
    ) -> DispatchOutcome:
        """把任务指令投递给 worker 并置为 running

        running 任务允许重新派发（覆盖指令文件）。
        投递失败时任务保持原状态，结果标记为可重试。
        """
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            return DispatchOutcome(
                status=DispatchStatus.NOT_FOUND,
                reason=f"task {task_id} not found",
            )

        if task.status not in DISPATCHABLE_STATES:
            return DispatchOutcome(
                status=DispatchStatus.INVALID_STATE,
                task=task,
                reason=f"task is {task.status.value}; assign it before dispatching",
            )
        if task.assigned_to and task.assigned_to != worker.agent_id:
            return DispatchOutcome(
                status=DispatchStatus.INVALID_STATE,
                task=task,
                reason=f"task is assigned to {task.assigned_to_name or task.assigned_to}",
            )

        decision = await enforce_policy(
            self._policy,
            AuditAction.TASK_DISPATCH.value,
            worker,
            audit=self._audit,
        )
        if not decision.allowed:
            return DispatchOutcome(status=DispatchStatus.DENIED, task=task, reason=decision.reason)
        if decision.require_confirmation and not confirmed:
            return DispatchOutcome(
                status=DispatchStatus.CONFIRMATION_REQUIRED,
                task=task,
                reason=decision.reason,
            )

        try:
            paths = await self._channel.deliver(task, worker)
        except RemoteError as e:
            log.warning(
                "task_dispatch_failed",
                task_id=task_id,
                worker=worker.name,
                error_type=type(e).__name__,
                error=str(e),
            )
            await record_audit(
                self._audit,
                AuditAction.TASK_DISPATCH,
                subject_id=worker.agent_id,
                subject_name=worker.name,
                detail={"task_id": task_id},
                success=False,
                error=str(e),
            )
            return DispatchOutcome(status=DispatchStatus.TRANSPORT_FAILED, task=task, reason=str(e))

        updated = await self._transition(task, TaskStatus.RUNNING, {})
        await record_audit(
            self._audit,
            AuditAction.TASK_DISPATCH,
            subject_id=worker.agent_id,
            subject_name=worker.name,
            detail={
                "task_id": task_id,
                "path": paths.instructions,
                "redispatch": task.status == TaskStatus.RUNNING,
            },
        )
        return DispatchOutcome(
            status=DispatchStatus.DISPATCHED,
            task=updated,
            reason=f"instructions written to {paths.instructions}",
        )

    async def poll(self, task_id: str, worker: Worker) -> PollOutcome | None:
        """检查 worker 的响应文件

        没有响应文件时返回 running 且不修改任务；
        远端不可达时同样视为 running 并附带 transport_error。
        """
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            return None

        static = _STATIC_POLL_STATUS.get(task.status)
        if static is not None:
            return PollOutcome(status=static, result=task.result, error=task.error, task=task)

        try:
            outcome = await self._channel.fetch(task, worker)
        except RemoteError as e:
            log.warning(
                "task_poll_unreachable",
                task_id=task_id,
                worker=worker.name,
                error=str(e),
            )
            return PollOutcome(status=PollStatus.RUNNING, transport_error=str(e), task=task)

        if outcome.status == PollStatus.RUNNING:
            return outcome.model_copy(update={"task": task})

        if outcome.status == PollStatus.COMPLETED:
            to_status, updates, action = (
                TaskStatus.COMPLETED,
                {"result": outcome.result},
                AuditAction.TASK_COMPLETE,
            )
        else:
            to_status, updates, action = (
                TaskStatus.FAILED,
                {"error": outcome.error},
                AuditAction.TASK_FAIL,
            )

        try:
            updated = await self._transition(
                task, to_status, {**updates, "completed_at": self._clock()}
            )
        except TaskStatusConflictError:
            # 轮询期间任务已被其他写入者终结，以当前状态为准
            current = await self._stores.task_store.get_task(task_id)
            if current is None:
                return None
            return PollOutcome(
                status=_STATIC_POLL_STATUS.get(current.status, PollStatus.RUNNING),
                result=current.result,
                error=current.error,
                task=current,
            )

        log.info("task_poll_finished", task_id=task_id, status=to_status.value)
        await record_audit(
            self._audit,
            action,
            subject_id=worker.agent_id,
            subject_name=worker.name,
            detail={"task_id": task_id, "source": "poll"},
        )
        return outcome.model_copy(update={"task": updated})

    async def poll_until_done(
        self,
        task_id: str,
        worker: Worker,
        wait_s: float,
        interval_s: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> PollOutcome | None:
        """按固定间隔轮询直到终态或等待预算耗尽

        预算耗尽时任务保持 running，不会被强制置为失败。
        """
        interval = interval_s if interval_s is not None else POLL_INTERVAL_S
        if interval <= 0:
            raise ValueError("interval_s 必须 > 0")

        outcome = await self.poll(task_id, worker)
        waited = 0.0
        while outcome is not None and not outcome.done and waited < wait_s:
            step = min(interval, wait_s - waited)
            await sleep(step)
            waited += step
            outcome = await self.poll(task_id, worker)
        return outcome

    # ---- 人工终态 ----

    async def complete(self, task_id: str, result: str) -> Task | None:
        """人工标记完成"""
        return await self._finish(
            task_id,
            TaskStatus.COMPLETED,
            {"result": result},
            AuditAction.TASK_COMPLETE,
        )

    async def fail(self, task_id: str, error: str) -> Task | None:
        """人工标记失败"""
        return await self._finish(
            task_id,
            TaskStatus.FAILED,
            {"error": error},
            AuditAction.TASK_FAIL,
        )

    async def cancel(self, task_id: str) -> Task | None:
        """取消任务（pending / assigned / running）"""
        return await self._finish(task_id, TaskStatus.CANCELLED, {}, AuditAction.TASK_CANCEL)

    # ---- 查询与清扫 ----

    async def get_task(self, task_id: str) -> Task | None:
        return await self._stores.task_store.get_task(task_id)

    async def list_tasks(
        self,
        status: TaskStatus | str | None = None,
        assigned_to: str | None = None,
    ) -> list[Task]:
        """查询任务列表"""
        status_value = TaskStatus(status).value if status else None
        return await self._stores.task_store.list_tasks(
            status=status_value,
            assigned_to=assigned_to,
        )

    async def sweep_timeouts(self) -> int:
        """执行一次超时清扫"""
        return await self._timeouts.sweep()

    # ---- 内部 ----

    async def _finish(
        self,
        task_id: str,
        to_status: TaskStatus,
        updates: dict[str, Any],
        action: AuditAction,
    ) -> Task | None:
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            return None
        if task.status in TERMINAL_STATES:
            raise TaskTransitionError(task_id, task.status, to_status)

        updated = await self._transition(
            task, to_status, {**updates, "completed_at": self._clock()}
        )
        log.info("task_finished", task_id=task_id, status=to_status.value)
        await record_audit(
            self._audit,
            action,
            subject_id=task.assigned_to,
            subject_name=task.assigned_to_name,
            detail={"task_id": task_id, "source": "manual"},
        )
        return updated

    async def _transition(
        self,
        task: Task,
        to_status: TaskStatus,
        updates: dict[str, Any],
    ) -> Task | None:
        """校验流转并以当前状态为前提写入

        Raises:
            TaskTransitionError: 流转不合法
            TaskStatusConflictError: 读写之间状态被修改
        """
        if not validate_transition(task.status, to_status):
            raise TaskTransitionError(task.task_id, task.status, to_status)

        async with self._stores.transaction():
            updated = await self._stores.task_store.update_task(
                task.task_id,
                {**updates, "status": to_status},
                expected_status=task.status,
            )
        return updated
