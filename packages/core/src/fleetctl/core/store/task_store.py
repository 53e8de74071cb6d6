"""TaskStore SQLite 实现

只提供数据库操作；状态流转合法性由 TaskOrchestrator 负责校验。
写操作不自动提交事务，需由调用方管理事务。
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any

import aiosqlite

from ..exceptions import TaskStatusConflictError
from ..models.enums import TaskStatus
from ..models.task import Task

# 创建后允许修改的列；其余字段不可变
_MUTABLE_COLUMNS = frozenset(
    {
        "assigned_to",
        "assigned_to_name",
        "routing_reason",
        "status",
        "result",
        "error",
        "assigned_at",
        "completed_at",
    }
)


def _to_db_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_task(self, task: Task) -> None:
        """创建任务记录"""
        await self._conn.execute(
            """
            INSERT INTO tasks (task_id, title, description, requested_by,
                               required_capabilities, timeout_seconds,
                               assigned_to, assigned_to_name, routing_reason,
                               status, result, error,
                               created_at, assigned_at, completed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                task.task_id,
                task.title,
                task.description,
                task.requested_by,
                json.dumps(task.required_capabilities, ensure_ascii=False),
                task.timeout_seconds,
                task.assigned_to,
                task.assigned_to_name,
                task.routing_reason,
                task.status.value,
                task.result,
                task.error,
                task.created_at.isoformat(),
                _to_db_value(task.assigned_at),
                _to_db_value(task.completed_at),
            ),
        )

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        cursor = await self._conn.execute(
            "SELECT * FROM tasks WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def list_tasks(
        self,
        status: str | None = None,
        assigned_to: str | None = None,
    ) -> list[Task]:
        """查询任务列表，支持按状态 / worker 筛选，按创建顺序排列"""
        clauses: list[str] = []
        params: list[str] = []
        if status:
            clauses.append("status = ?")
            params.append(status)
        if assigned_to:
            clauses.append("assigned_to = ?")
            params.append(assigned_to)

        sql = "SELECT * FROM tasks"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at ASC, task_id ASC"

        cursor = await self._conn.execute(sql, params)
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def update_task(
        self,
        task_id: str,
        updates: dict[str, Any],
        expected_status: TaskStatus | None = None,
    ) -> Task | None:
        """更新任务的可变字段

        Args:
            task_id: 任务 ID
            updates: 列名 -> 新值；只允许可变列
            expected_status: 如果给出，仅当当前状态等于该值时才写入

        Returns:
            更新后的 Task；任务不存在时返回 None

        Raises:
            ValueError: updates 中包含不可变字段
            TaskStatusConflictError: 当前状态与 expected_status 不一致
        """
        illegal = set(updates) - _MUTABLE_COLUMNS
        if illegal:
            raise ValueError(f"不可修改的任务字段: {sorted(illegal)}")
        if not updates:
            return await self.get_task(task_id)

        columns = sorted(updates)
        assignments = ", ".join(f"{col} = ?" for col in columns)
        params: list[Any] = [_to_db_value(updates[col]) for col in columns]

        sql = f"UPDATE tasks SET {assignments} WHERE task_id = ?"
        params.append(task_id)
        if expected_status is not None:
            sql += " AND status = ?"
            params.append(expected_status.value)

        cursor = await self._conn.execute(sql, params)
        if cursor.rowcount == 0:
            current = await self.get_task(task_id)
            if current is None:
                return None
            raise TaskStatusConflictError(task_id, str(expected_status))

        return await self.get_task(task_id)

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        """将数据库行转换为 Task 模型"""
        return Task(
            task_id=row[0],
            title=row[1],
            description=row[2],
            requested_by=row[3],
            required_capabilities=json.loads(row[4]) if row[4] else [],
            timeout_seconds=row[5],
            assigned_to=row[6],
            assigned_to_name=row[7],
            routing_reason=row[8],
            status=TaskStatus(row[9]),
            result=row[10],
            error=row[11],
            created_at=datetime.fromisoformat(row[12]),
            assigned_at=_parse_ts(row[13]),
            completed_at=_parse_ts(row[14]),
        )
