"""CLI 运行时 -- 单次命令调用内共享的 store / audit / policy / orchestrator"""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import rich_click as click

from fleetctl.core.audit import AuditLogger
from fleetctl.core.config import get_db_path, get_policy_path
from fleetctl.core.policy import PolicyEngine
from fleetctl.core.store import StoreGroup, create_store_group
from fleetctl.core.tasks import DispatchChannel, TaskOrchestrator
from fleetctl.remote import ExecutorFactory, default_executor_factory
from fleetctl.vault import VaultSession


def _prompt_password(message: str) -> str:
    return click.prompt(message, hide_input=True)


@dataclass
class CliState:
    """click 上下文对象；测试可替换执行器工厂与口令输入"""

    executor_factory: ExecutorFactory = default_executor_factory
    prompt: Callable[[str], str] = _prompt_password
    actor: str = "cli"
    _vault_session: VaultSession | None = field(default=None, repr=False)

    @property
    def vault_session(self) -> VaultSession:
        # 进程内只提示一次主口令
        if self._vault_session is None:
            self._vault_session = VaultSession(self.prompt)
        return self._vault_session


@dataclass
class Runtime:
    stores: StoreGroup
    audit: AuditLogger
    policy: PolicyEngine
    orchestrator: TaskOrchestrator
    executor_factory: ExecutorFactory


@asynccontextmanager
async def open_runtime(state: CliState) -> AsyncIterator[Runtime]:
    """打开数据库并组装服务，退出时关闭连接"""
    stores = await create_store_group(get_db_path())
    try:
        audit = AuditLogger(
            stores.audit_store, stores.conn, actor=state.actor, lock=stores.write_lock
        )
        policy = PolicyEngine.load(get_policy_path())
        orchestrator = TaskOrchestrator(
            stores,
            DispatchChannel(state.executor_factory),
            audit=audit,
            policy=policy,
        )
        yield Runtime(
            stores=stores,
            audit=audit,
            policy=policy,
            orchestrator=orchestrator,
            executor_factory=state.executor_factory,
        )
    finally:
        await stores.close()
