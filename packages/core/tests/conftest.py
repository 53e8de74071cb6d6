"""packages/core 测试配置 -- 本机执行器、不可达执行器与 orchestrator fixture"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from fleetctl.core.audit import AuditLogger
from fleetctl.core.models import Worker
from fleetctl.core.policy import PolicyEngine
from fleetctl.core.store import StoreGroup
from fleetctl.core.tasks import DispatchChannel, TaskOrchestrator
from fleetctl.remote import ExecResult, LocalExecutor, RemoteUnreachableError


class UnreachableExecutor:
    """connect 总是失败的执行器"""

    def __init__(self) -> None:
        self.disconnected = False

    async def connect(self, worker: Worker) -> None:
        raise RemoteUnreachableError(f"openclaw@{worker.host}", "connection refused")

    async def exec(self, command: str) -> ExecResult:
        raise AssertionError("exec should not be called")

    async def put_content(self, content: str, remote_path: str) -> None:
        raise AssertionError("put_content should not be called")

    async def disconnect(self) -> None:
        self.disconnected = True


class FakeClock:
    """可手动推进的时钟"""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def remote_root(tmp_path: Path) -> Path:
    """LocalExecutor 的 HOME 目录"""
    root = tmp_path / "remote"
    root.mkdir()
    return root


@pytest.fixture
def local_factory(remote_root: Path) -> Callable[[Worker], LocalExecutor]:
    return lambda worker: LocalExecutor(root=remote_root)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def audit(stores: StoreGroup) -> AuditLogger:
    return AuditLogger(
        stores.audit_store, stores.conn, actor="test", lock=stores.write_lock
    )


@pytest.fixture
def orchestrator(
    stores: StoreGroup,
    local_factory,
    audit: AuditLogger,
    clock: FakeClock,
) -> TaskOrchestrator:
    """使用本机执行器与默认 policy 的 orchestrator"""
    return TaskOrchestrator(
        stores,
        DispatchChannel(local_factory),
        audit=audit,
        policy=PolicyEngine(),
        clock=clock,
    )


@pytest.fixture
def unreachable_factory() -> Callable[[Worker], UnreachableExecutor]:
    return lambda worker: UnreachableExecutor()
