"""fleetctl Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from .agent_store import SqliteAgentStore
from .audit_store import SqliteAuditStore
from .sqlite_init import init_db
from .task_store import SqliteTaskStore


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接

    同一连接上的并发写入经 write_lock 串行化：一个协程的回滚不会撤销
    另一个协程已执行但尚未提交的写入。
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn = conn
        self.write_lock = asyncio.Lock()
        self.task_store = SqliteTaskStore(conn)
        self.agent_store = SqliteAgentStore(conn)
        self.audit_store = SqliteAuditStore(conn)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """持有写锁执行一组写操作，成功提交，异常回滚"""
        async with write_transaction(self.conn, self.write_lock):
            yield

    async def close(self) -> None:
        """关闭共享连接"""
        await self.conn.close()


@asynccontextmanager
async def write_transaction(
    conn: aiosqlite.Connection,
    lock: asyncio.Lock,
) -> AsyncIterator[None]:
    """在锁内执行写操作并提交；异常时回滚后重新抛出"""
    async with lock:
        try:
            yield
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise


async def create_store_group(db_path: str) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径

    Returns:
        StoreGroup 实例
    """
    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(conn=conn)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "write_transaction",
    "SqliteTaskStore",
    "SqliteAgentStore",
    "SqliteAuditStore",
    "init_db",
]
