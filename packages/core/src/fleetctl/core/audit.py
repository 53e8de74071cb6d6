"""审计 sink -- 记录每一次受控操作的结果

AuditLogger 本身不吞异常；调用方通过 record_audit() 记录，
审计失败只记一条 warning 日志，永远不影响主操作的结果。
"""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Protocol

import aiosqlite
import structlog
from ulid import ULID

from .models.audit import AuditEntry
from .models.enums import AuditAction
from .store import write_transaction
from .store.protocols import AuditStore

log = structlog.get_logger()


class AuditSink(Protocol):
    """审计 sink 接口"""

    async def append(
        self,
        action: AuditAction,
        *,
        subject_id: str | None = None,
        subject_name: str | None = None,
        detail: dict[str, Any] | None = None,
        success: bool = True,
        error: str | None = None,
    ) -> None:
        """追加一条审计记录"""
        ...


class AuditLogger:
    """基于 AuditStore 的审计 sink，每条记录单独提交

    与 StoreGroup 共用连接时应传入其 write_lock。
    """

    def __init__(
        self,
        store: AuditStore,
        conn: aiosqlite.Connection,
        actor: str = "cli",
        clock: Callable[[], datetime] | None = None,
        lock: asyncio.Lock | None = None,
    ) -> None:
        self._store = store
        self._conn = conn
        self._lock = lock or asyncio.Lock()
        self._actor = actor
        self._clock = clock or (lambda: datetime.now(UTC))

    async def append(
        self,
        action: AuditAction,
        *,
        subject_id: str | None = None,
        subject_name: str | None = None,
        detail: dict[str, Any] | None = None,
        success: bool = True,
        error: str | None = None,
    ) -> None:
        entry = AuditEntry(
            entry_id=str(ULID()),
            ts=self._clock(),
            action=action,
            actor=self._actor,
            subject_id=subject_id,
            subject_name=subject_name,
            detail=detail or {},
            success=success,
            error=error,
        )
        async with write_transaction(self._conn, self._lock):
            await self._store.append(entry)


async def record_audit(
    sink: AuditSink | None,
    action: AuditAction,
    **fields: Any,
) -> None:
    """Fire-and-forget 审计记录

    审计失败只记录 warning，不向调用方抛出。
    """
    if sink is None:
        return
    try:
        await sink.append(action, **fields)
    except Exception as e:
        log.warning(
            "audit_append_failed",
            action=str(action),
            error_type=type(e).__name__,
            error=str(e),
        )
