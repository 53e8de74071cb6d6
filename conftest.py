"""全局 pytest 配置 -- 临时 SQLite 数据库 + worker 工厂 fixture"""

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from ulid import ULID

from fleetctl.core.models import Worker, WorkerRole, WorkerStatus
from fleetctl.core.store import StoreGroup, create_store_group


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "test.db"


@pytest_asyncio.fixture
async def stores(tmp_db_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """提供已初始化的 StoreGroup"""
    group = await create_store_group(str(tmp_db_path))
    yield group
    await group.close()


@pytest.fixture
def make_worker() -> Callable[..., Worker]:
    """构造 Worker；默认在线、普通 worker 角色"""

    def _make(name: str = "alpha", **overrides: Any) -> Worker:
        now = datetime.now(UTC)
        fields: dict[str, Any] = {
            "agent_id": str(ULID()),
            "name": name,
            "host": "local",
            "role": WorkerRole.WORKER,
            "status": WorkerStatus.ONLINE,
            "created_at": now,
            "updated_at": now,
        }
        fields.update(overrides)
        return Worker(**fields)

    return _make


@pytest.fixture
def fleet_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """把 FLEETCTL_* 路径全部指向临时目录，返回数据目录"""
    data_dir = tmp_path / "fleetctl"
    monkeypatch.setenv("FLEETCTL_DATA_DIR", str(data_dir))
    monkeypatch.setenv("FLEETCTL_DB_PATH", str(data_dir / "fleetctl.db"))
    monkeypatch.setenv("FLEETCTL_VAULT_PATH", str(data_dir / "secrets.json"))
    monkeypatch.setenv("FLEETCTL_POLICY_PATH", str(data_dir / "policy.json"))
    monkeypatch.setenv("FLEETCTL_VAULT_SCRYPT_N", "16")
    monkeypatch.setenv("FLEETCTL_LOG_LEVEL", "WARNING")
    return data_dir
