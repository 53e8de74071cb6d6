"""派发 / 轮询的类型化结果

预期内的情况（不存在、状态不符、policy 拒绝、传输失败、仍在运行）
都以结果对象返回，不抛异常。
"""

from enum import StrEnum

from pydantic import BaseModel, Field

from ..models.task import Task


class DispatchStatus(StrEnum):
    """派发结果分类"""

    DISPATCHED = "dispatched"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    DENIED = "denied"
    CONFIRMATION_REQUIRED = "confirmation_required"
    TRANSPORT_FAILED = "transport_failed"


class DispatchOutcome(BaseModel):
    """dispatch() 的结果"""

    status: DispatchStatus
    task: Task | None = Field(default=None, description="操作后的任务快照")
    reason: str = Field(default="")

    @property
    def dispatched(self) -> bool:
        return self.status == DispatchStatus.DISPATCHED

    @property
    def retryable(self) -> bool:
        """传输失败时任务状态未变，可直接重试派发"""
        return self.status == DispatchStatus.TRANSPORT_FAILED


class PollStatus(StrEnum):
    """轮询观察到的任务状态"""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PollOutcome(BaseModel):
    """poll() 的结果"""

    status: PollStatus
    result: str | None = None
    error: str | None = None
    transport_error: str | None = Field(
        default=None,
        description="远端不可达时的错误描述；此时 status 视为 running",
    )
    task: Task | None = None

    @property
    def done(self) -> bool:
        return self.status in (PollStatus.COMPLETED, PollStatus.FAILED, PollStatus.CANCELLED)
