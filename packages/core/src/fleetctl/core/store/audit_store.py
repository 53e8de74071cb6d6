"""AuditStore SQLite 实现

审计表 append-only：只允许插入，不允许更新或删除。
"""

import json
from datetime import datetime

import aiosqlite

from ..models.audit import AuditEntry
from ..models.enums import AuditAction


class SqliteAuditStore:
    """AuditStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def append(self, entry: AuditEntry) -> None:
        """追加审计记录（append-only）

        注意：此方法不自动提交事务，需由调用方管理事务。
        """
        await self._conn.execute(
            """
            INSERT INTO audit_log (entry_id, ts, action, actor, subject_id,
                                   subject_name, detail, success, error)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.entry_id,
                entry.ts.isoformat(),
                entry.action.value,
                entry.actor,
                entry.subject_id,
                entry.subject_name,
                json.dumps(entry.detail, ensure_ascii=False, default=str),
                1 if entry.success else 0,
                entry.error,
            ),
        )

    async def query(
        self,
        action: str | None = None,
        subject_id: str | None = None,
        since: datetime | None = None,
        limit: int = 50,
    ) -> list[AuditEntry]:
        """按条件查询审计记录，最新的在前"""
        clauses: list[str] = []
        params: list[object] = []
        if action:
            clauses.append("action = ?")
            params.append(action)
        if subject_id:
            clauses.append("subject_id = ?")
            params.append(subject_id)
        if since is not None:
            clauses.append("ts >= ?")
            params.append(since.isoformat())

        sql = "SELECT * FROM audit_log"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        # ULID 字典序即时间序，作为同一时间戳内的次序
        sql += " ORDER BY ts DESC, entry_id DESC LIMIT ?"
        params.append(limit)

        cursor = await self._conn.execute(sql, params)
        rows = await cursor.fetchall()
        return [self._row_to_entry(row) for row in rows]

    async def get(self, entry_id: str) -> AuditEntry | None:
        """根据 entry_id 查询审计记录"""
        cursor = await self._conn.execute(
            "SELECT * FROM audit_log WHERE entry_id = ?",
            (entry_id,),
        )
        row = await cursor.fetchone()
        return self._row_to_entry(row) if row else None

    @staticmethod
    def _row_to_entry(row: aiosqlite.Row) -> AuditEntry:
        """将数据库行转换为 AuditEntry 模型"""
        return AuditEntry(
            entry_id=row[0],
            ts=datetime.fromisoformat(row[1]),
            action=AuditAction(row[2]),
            actor=row[3],
            subject_id=row[4],
            subject_name=row[5],
            detail=json.loads(row[6]) if row[6] else {},
            success=bool(row[7]),
            error=row[8],
        )
