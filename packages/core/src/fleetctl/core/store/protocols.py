"""Store Protocol 接口定义

定义 TaskStore、AgentRoster、AuditStore 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
"""

from datetime import datetime
from typing import Any, Protocol

from ..models.agent import Worker
from ..models.audit import AuditEntry
from ..models.enums import TaskStatus
from ..models.task import Task


class TaskStore(Protocol):
    """Task 存储接口"""

    async def create_task(self, task: Task) -> None:
        """创建任务记录"""
        ...

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        ...

    async def list_tasks(
        self,
        status: str | None = None,
        assigned_to: str | None = None,
    ) -> list[Task]:
        """查询任务列表，支持按状态 / worker 筛选"""
        ...

    async def update_task(
        self,
        task_id: str,
        updates: dict[str, Any],
        expected_status: TaskStatus | None = None,
    ) -> Task | None:
        """更新可变字段，可选乐观状态校验"""
        ...


class AgentRoster(Protocol):
    """Agent roster 接口 -- 任务子系统只读"""

    async def list_agents(self) -> list[Worker]:
        """查询全部 worker"""
        ...

    async def get_agent(self, id_or_name: str) -> Worker | None:
        """按 ID 或名称查询 worker"""
        ...

    async def update_agent(
        self,
        agent_id: str,
        patch: dict[str, Any],
        updated_at: datetime,
    ) -> Worker | None:
        """部分更新 worker（仅外部协作方使用）"""
        ...


class AuditStore(Protocol):
    """审计存储接口 -- append-only"""

    async def append(self, entry: AuditEntry) -> None:
        """追加审计记录"""
        ...

    async def query(
        self,
        action: str | None = None,
        subject_id: str | None = None,
        since: datetime | None = None,
        limit: int = 50,
    ) -> list[AuditEntry]:
        """按条件查询审计记录"""
        ...
