"""AgentStore SQLite 实现 -- agent roster

任务子系统只读取 roster；update_agent 供外部协作方（如可达性探测）使用。
写操作不自动提交事务，需由调用方管理事务。
"""

import json
from datetime import datetime
from typing import Any

import aiosqlite

from ..models.agent import Worker
from ..models.enums import WorkerRole, WorkerStatus

_LIST_COLUMNS = ("capabilities", "tags")
_PATCHABLE_COLUMNS = frozenset(
    {
        "name",
        "host",
        "user",
        "role",
        "status",
        "capabilities",
        "description",
        "session_key",
        "tags",
        "ssh_key_path",
        "workspace_dir",
    }
)


class SqliteAgentStore:
    """AgentStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def add_agent(self, worker: Worker) -> None:
        """登记新的 worker"""
        await self._conn.execute(
            """
            INSERT INTO agents (agent_id, name, host, user, role, status,
                                capabilities, description, session_key, tags,
                                ssh_key_path, workspace_dir, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                worker.agent_id,
                worker.name,
                worker.host,
                worker.user,
                worker.role.value,
                worker.status.value,
                json.dumps(worker.capabilities, ensure_ascii=False),
                worker.description,
                worker.session_key,
                json.dumps(worker.tags, ensure_ascii=False),
                worker.ssh_key_path,
                worker.workspace_dir,
                worker.created_at.isoformat(),
                worker.updated_at.isoformat(),
            ),
        )

    async def get_agent(self, id_or_name: str) -> Worker | None:
        """按 agent_id 或名称查询 worker"""
        cursor = await self._conn.execute(
            "SELECT * FROM agents WHERE agent_id = ? OR name = ? LIMIT 1",
            (id_or_name, id_or_name),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_worker(row)

    async def list_agents(self) -> list[Worker]:
        """查询全部 worker，按登记顺序排列"""
        cursor = await self._conn.execute(
            "SELECT * FROM agents ORDER BY created_at ASC, agent_id ASC"
        )
        rows = await cursor.fetchall()
        return [self._row_to_worker(row) for row in rows]

    async def update_agent(
        self,
        agent_id: str,
        patch: dict[str, Any],
        updated_at: datetime,
    ) -> Worker | None:
        """部分更新 worker 字段

        Returns:
            更新后的 Worker；不存在时返回 None
        """
        illegal = set(patch) - _PATCHABLE_COLUMNS
        if illegal:
            raise ValueError(f"不可修改的 agent 字段: {sorted(illegal)}")

        values: dict[str, Any] = {}
        for col, value in patch.items():
            if col in _LIST_COLUMNS:
                value = json.dumps(list(value), ensure_ascii=False)
            elif isinstance(value, (WorkerRole, WorkerStatus)):
                value = value.value
            values[col] = value
        values["updated_at"] = updated_at.isoformat()

        columns = sorted(values)
        assignments = ", ".join(f"{col} = ?" for col in columns)
        cursor = await self._conn.execute(
            f"UPDATE agents SET {assignments} WHERE agent_id = ?",
            [values[col] for col in columns] + [agent_id],
        )
        if cursor.rowcount == 0:
            return None
        return await self.get_agent(agent_id)

    async def remove_agent(self, agent_id: str) -> bool:
        """删除 worker，返回是否删除了记录"""
        cursor = await self._conn.execute(
            "DELETE FROM agents WHERE agent_id = ?",
            (agent_id,),
        )
        return cursor.rowcount > 0

    @staticmethod
    def _row_to_worker(row: aiosqlite.Row) -> Worker:
        """将数据库行转换为 Worker 模型"""
        return Worker(
            agent_id=row[0],
            name=row[1],
            host=row[2],
            user=row[3],
            role=WorkerRole(row[4]),
            status=WorkerStatus(row[5]),
            capabilities=json.loads(row[6]) if row[6] else [],
            description=row[7] or "",
            session_key=row[8],
            tags=json.loads(row[9]) if row[9] else [],
            ssh_key_path=row[10],
            workspace_dir=row[11],
            created_at=datetime.fromisoformat(row[12]),
            updated_at=datetime.fromisoformat(row[13]),
        )
