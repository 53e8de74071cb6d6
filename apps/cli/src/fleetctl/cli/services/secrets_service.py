"""SecretsService -- secret 操作与推送到 worker 的 .env

流程（push）：
1. policy 闸门 secrets.push（拒绝 / 待确认时不产生任何副作用）
2. 从 vault 导出该 worker 可见的条目（全局 + 该 worker 作用域）
3. 通过 RemoteExecutor 写入 ~/.openclaw/.env（替换或合并）
4. 记录审计；日志与审计中只出现 key，从不出现值
"""

import re
from collections.abc import Sequence
from enum import StrEnum

import structlog
from pydantic import BaseModel, Field

from fleetctl.core.audit import AuditSink, record_audit
from fleetctl.core.batch import BatchReport, run_in_batches
from fleetctl.core.config import REMOTE_ENV_DIR
from fleetctl.core.models import AuditAction, Worker
from fleetctl.core.policy import PolicyEngine, enforce_policy
from fleetctl.remote import (
    ExecutorFactory,
    RemoteCommandError,
    RemoteError,
    quote_remote_path,
)
from fleetctl.vault import SecretEntry, SecretListing, VaultSession

log = structlog.get_logger()

REMOTE_ENV_FILE = f"{REMOTE_ENV_DIR}/.env"

_ENV_LINE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)=")


class PushStatus(StrEnum):
    PUSHED = "pushed"
    NOTHING_TO_PUSH = "nothing_to_push"
    DENIED = "denied"
    CONFIRMATION_REQUIRED = "confirmation_required"


class PushOutcome(BaseModel):
    """push() 的结果"""

    status: PushStatus
    agent_name: str
    keys: list[str] = Field(default_factory=list, description="推送的 key（不含值）")
    reason: str = ""


def render_env(entries: dict[str, str]) -> str:
    """仅由 vault 条目构成的 .env"""
    return "".join(f"{key}={value}\n" for key, value in entries.items())


def merge_env(existing: str, entries: dict[str, str]) -> str:
    """合并到已有 .env：同名 key 原位替换，其余行（含注释）保留，新 key 追加"""
    lines: list[str] = []
    replaced: set[str] = set()
    for line in existing.splitlines():
        match = _ENV_LINE.match(line)
        if match and match.group(1) in entries:
            key = match.group(1)
            lines.append(f"{key}={entries[key]}")
            replaced.add(key)
        else:
            lines.append(line)

    for key, value in entries.items():
        if key not in replaced:
            lines.append(f"{key}={value}")
    return "\n".join(lines) + "\n"


class SecretsService:
    """secret 业务服务，vault 通过 VaultSession 按需打开"""

    def __init__(
        self,
        session: VaultSession,
        executor_factory: ExecutorFactory,
        audit: AuditSink | None = None,
        policy: PolicyEngine | None = None,
    ) -> None:
        self._session = session
        self._executor_factory = executor_factory
        self._audit = audit
        self._policy = policy

    async def set(self, key: str, value: str, agent: Worker | None = None) -> None:
        vault = await self._session.open()
        await vault.set(key, value, agent.agent_id if agent else None)
        await record_audit(
            self._audit,
            AuditAction.SECRETS_SET,
            subject_id=agent.agent_id if agent else None,
            subject_name=agent.name if agent else None,
            detail={"key": key, "scope": agent.agent_id if agent else "global"},
        )

    async def get(self, key: str, agent_id: str | None = None) -> SecretEntry | None:
        vault = await self._session.open()
        entry = await vault.get(key, agent_id)
        await record_audit(
            self._audit,
            AuditAction.SECRETS_GET,
            subject_id=agent_id,
            detail={"key": key},
            success=entry is not None,
            error=None if entry else "not found",
        )
        return entry

    async def list(self, agent_id: str | None = None) -> list[SecretListing]:
        vault = await self._session.open()
        return await vault.list(agent_id)

    async def delete(self, key: str) -> bool:
        vault = await self._session.open()
        removed = await vault.delete(key)
        await record_audit(
            self._audit,
            AuditAction.SECRETS_DELETE,
            detail={"key": key},
            success=removed,
            error=None if removed else "not found",
        )
        return removed

    async def push(
        self,
        agent: Worker,
        merge: bool = False,
        confirmed: bool = False,
    ) -> PushOutcome:
        """把 worker 可见的 secret 写到其 .env

        Raises:
            RemoteError: 连接或写入失败（已记录审计）
        """
        decision = await enforce_policy(
            self._policy,
            AuditAction.SECRETS_PUSH.value,
            agent,
            audit=self._audit,
        )
        if not decision.allowed:
            return PushOutcome(
                status=PushStatus.DENIED,
                agent_name=agent.name,
                reason=decision.reason,
            )
        if decision.require_confirmation and not confirmed:
            return PushOutcome(
                status=PushStatus.CONFIRMATION_REQUIRED,
                agent_name=agent.name,
                reason=decision.reason,
            )

        vault = await self._session.open()
        entries = await vault.get_owner_env_entries(agent.agent_id)
        if not entries:
            return PushOutcome(status=PushStatus.NOTHING_TO_PUSH, agent_name=agent.name)

        keys = list(entries)
        try:
            await self._write_env(agent, entries, merge)
        except RemoteError as e:
            log.warning("secrets_push_failed", agent=agent.name, error=str(e))
            await record_audit(
                self._audit,
                AuditAction.SECRETS_PUSH,
                subject_id=agent.agent_id,
                subject_name=agent.name,
                detail={"keys": keys, "merge": merge},
                success=False,
                error=str(e),
            )
            raise

        log.info("secrets_pushed", agent=agent.name, count=len(keys))
        await record_audit(
            self._audit,
            AuditAction.SECRETS_PUSH,
            subject_id=agent.agent_id,
            subject_name=agent.name,
            detail={"keys": keys, "merge": merge},
        )
        return PushOutcome(status=PushStatus.PUSHED, agent_name=agent.name, keys=keys)

    async def push_many(
        self,
        agents: Sequence[Worker],
        merge: bool = False,
        confirmed: bool = False,
        concurrency: int = 1,
        pause_s: float = 0,
    ) -> BatchReport[Worker]:
        """分批推送到多个 worker；单个失败不影响后续批次"""
        return await run_in_batches(
            agents,
            lambda agent: self.push(agent, merge=merge, confirmed=confirmed),
            concurrency=concurrency,
            pause_s=pause_s,
        )

    async def _write_env(self, agent: Worker, entries: dict[str, str], merge: bool) -> None:
        executor = self._executor_factory(agent)
        try:
            await executor.connect(agent)

            content = render_env(entries)
            if merge:
                env_file = quote_remote_path(REMOTE_ENV_FILE)
                existing = await executor.exec(f"cat {env_file} 2>/dev/null")
                if existing.ok:
                    content = merge_env(existing.stdout, entries)

            mkdir = f"mkdir -p {quote_remote_path(REMOTE_ENV_DIR)}"
            result = await executor.exec(mkdir)
            if not result.ok:
                raise RemoteCommandError(mkdir, result.exit_code, result.stderr)
            await executor.put_content(content, REMOTE_ENV_FILE)
        finally:
            await executor.disconnect()
