"""集成测试共享 fixture -- 真实 store + 本机 worker + 真实 vault"""

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import pytest_asyncio

from fleetctl.core.audit import AuditLogger
from fleetctl.core.policy import PolicyEngine
from fleetctl.core.store import StoreGroup
from fleetctl.core.tasks import DispatchChannel, TaskOrchestrator
from fleetctl.remote import LocalExecutor


class SteppingClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def remote_root(tmp_path: Path) -> Path:
    root = tmp_path / "worker-home"
    root.mkdir()
    return root


@pytest.fixture
def local_factory(remote_root: Path) -> Callable:
    return lambda worker: LocalExecutor(root=remote_root)


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()


@pytest_asyncio.fixture
async def control_plane(
    stores: StoreGroup,
    local_factory,
    clock: SteppingClock,
) -> AsyncGenerator[tuple[TaskOrchestrator, AuditLogger], None]:
    audit = AuditLogger(
        stores.audit_store, stores.conn, actor="integration", lock=stores.write_lock
    )
    orchestrator = TaskOrchestrator(
        stores,
        DispatchChannel(local_factory),
        audit=audit,
        policy=PolicyEngine(),
        clock=clock,
    )
    yield orchestrator, audit
