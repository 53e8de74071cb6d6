"""Task Domain Model

创建后 task_id / title / description / requested_by /
required_capabilities / timeout_seconds / created_at 不可变，
状态相关字段只能经由 TaskOrchestrator 或 TimeoutEnforcer 修改。
任务永不删除，终态任务保留用于审计。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import TaskStatus


class Task(BaseModel):
    """Task 数据模型 -- 一个委派给 worker 的工作单元"""

    task_id: str = Field(description="唯一标识，ULID 格式")
    title: str = Field(min_length=1, description="任务标题")
    description: str = Field(default="", description="交给 worker 的完整指令")
    requested_by: str = Field(description="请求者标识")
    required_capabilities: list[str] = Field(
        default_factory=list,
        description="路由所需能力标签（顺序无关）",
    )
    timeout_seconds: int | None = Field(default=None, ge=1, description="超时秒数")

    assigned_to: str | None = Field(default=None, description="分配到的 worker ID")
    assigned_to_name: str | None = Field(default=None, description="worker 显示名")
    routing_reason: str | None = Field(default=None, description="路由选择原因")

    status: TaskStatus = Field(default=TaskStatus.PENDING, description="当前状态")
    result: str | None = Field(default=None, description="completed 时的结果")
    error: str | None = Field(default=None, description="failed 时的错误信息")

    created_at: datetime = Field(description="创建时间")
    assigned_at: datetime | None = Field(default=None, description="分配时间")
    completed_at: datetime | None = Field(default=None, description="进入终态的时间")
