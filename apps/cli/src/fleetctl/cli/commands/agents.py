"""agents 命令组 -- 最小的 roster 维护（登记、查看、更新、移除）"""

import json
from datetime import UTC, datetime
from typing import Any

import rich_click as click
from ulid import ULID

from fleetctl.core.audit import record_audit
from fleetctl.core.models import AuditAction, Worker, WorkerRole, WorkerStatus
from fleetctl.core.policy import enforce_policy

from ..services.runtime import CliState, open_runtime
from ._common import confirm_option, format_table, pass_state, run_async, split_csv

_ROLES = [r.value for r in WorkerRole]
_STATUSES = [s.value for s in WorkerStatus]


@click.group()
def agents() -> None:
    """Manage the agent roster."""


@agents.command("add")
@click.argument("name")
@click.option("--host", required=True, help="Hostname or IP (use 'local' for this machine).")
@click.option("--user", default="openclaw", show_default=True, help="SSH user.")
@click.option(
    "--role",
    type=click.Choice(_ROLES),
    default=WorkerRole.WORKER.value,
    show_default=True,
)
@click.option(
    "--status",
    type=click.Choice(_STATUSES),
    default=WorkerStatus.UNKNOWN.value,
    show_default=True,
)
@click.option("--capabilities", default=None, help="Comma-separated capabilities.")
@click.option("--description", default="", help="What this agent does.")
@click.option("--session-key", default=None, help="Session key for direct messaging.")
@click.option("--tags", default=None, help="Comma-separated tags.")
@click.option("--ssh-key", "ssh_key_path", default=None, help="SSH private key path.")
@click.option("--workspace", "workspace_dir", default=None, help="Remote workspace directory.")
@pass_state
def add_agent(
    state: CliState,
    name: str,
    host: str,
    user: str,
    role: str,
    status: str,
    capabilities: str | None,
    description: str,
    session_key: str | None,
    tags: str | None,
    ssh_key_path: str | None,
    workspace_dir: str | None,
) -> None:
    """Register an agent."""

    async def _run() -> None:
        async with open_runtime(state) as rt:
            if await rt.stores.agent_store.get_agent(name) is not None:
                raise click.ClickException(f"Agent {name} already exists.")
            now = datetime.now(UTC)
            worker = Worker(
                agent_id=str(ULID()),
                name=name,
                host=host,
                user=user,
                role=WorkerRole(role),
                status=WorkerStatus(status),
                capabilities=split_csv(capabilities),
                description=description,
                session_key=session_key,
                tags=split_csv(tags),
                ssh_key_path=ssh_key_path,
                workspace_dir=workspace_dir,
                created_at=now,
                updated_at=now,
            )
            async with rt.stores.transaction():
                await rt.stores.agent_store.add_agent(worker)
            await record_audit(
                rt.audit,
                AuditAction.AGENT_ADD,
                subject_id=worker.agent_id,
                subject_name=worker.name,
                detail={"host": host, "role": role},
            )
        click.echo(f"Agent {click.style(name, bold=True)} added ({worker.agent_id}).")

    run_async(_run())


@agents.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@pass_state
def list_agents(state: CliState, as_json: bool) -> None:
    """List registered agents."""

    async def _run() -> None:
        async with open_runtime(state) as rt:
            roster = await rt.stores.agent_store.list_agents()
        if as_json:
            click.echo(json.dumps([w.model_dump(mode="json") for w in roster], indent=2))
            return
        if not roster:
            click.echo("No agents registered.")
            return
        rows = [
            [w.name, w.agent_id, w.host, w.role.value, w.status.value, ",".join(w.capabilities)]
            for w in roster
        ]
        click.echo(format_table(["NAME", "ID", "HOST", "ROLE", "STATUS", "CAPABILITIES"], rows))

    run_async(_run())


@agents.command("info")
@click.argument("agent")
@pass_state
def agent_info(state: CliState, agent: str) -> None:
    """Show agent details as JSON."""

    async def _run() -> None:
        async with open_runtime(state) as rt:
            worker = await rt.stores.agent_store.get_agent(agent)
        if worker is None:
            raise click.ClickException(f"Agent {agent} not found.")
        click.echo(worker.model_dump_json(indent=2))

    run_async(_run())


@agents.command("update")
@click.argument("agent")
@click.option("--name", default=None, help="New agent name.")
@click.option("--host", default=None, help="New hostname.")
@click.option("--user", default=None, help="New SSH user.")
@click.option("--role", type=click.Choice(_ROLES), default=None)
@click.option("--status", type=click.Choice(_STATUSES), default=None)
@click.option("--capabilities", default=None, help="Comma-separated capabilities (replaces).")
@click.option("--description", default=None)
@click.option("--session-key", default=None)
@click.option("--tags", default=None, help="Comma-separated tags (replaces existing).")
@click.option("--ssh-key", "ssh_key_path", default=None)
@click.option("--workspace", "workspace_dir", default=None)
@pass_state
def update_agent(state: CliState, agent: str, **fields: Any) -> None:
    """Update agent fields."""
    patch: dict[str, Any] = {k: v for k, v in fields.items() if v is not None}
    for key in ("capabilities", "tags"):
        if key in patch:
            patch[key] = split_csv(patch[key])
    if "role" in patch:
        patch["role"] = WorkerRole(patch["role"])
    if "status" in patch:
        patch["status"] = WorkerStatus(patch["status"])
    if not patch:
        raise click.UsageError("Nothing to update.")

    async def _run() -> None:
        async with open_runtime(state) as rt:
            worker = await rt.stores.agent_store.get_agent(agent)
            if worker is None:
                raise click.ClickException(f"Agent {agent} not found.")
            async with rt.stores.transaction():
                updated = await rt.stores.agent_store.update_agent(
                    worker.agent_id, patch, datetime.now(UTC)
                )
            await record_audit(
                rt.audit,
                AuditAction.AGENT_UPDATE,
                subject_id=worker.agent_id,
                subject_name=worker.name,
                detail={"fields": sorted(patch)},
            )
        click.echo(f"Agent {click.style(updated.name if updated else agent, bold=True)} updated.")

    run_async(_run())


@agents.command("remove")
@click.argument("agent")
@confirm_option
@pass_state
def remove_agent(state: CliState, agent: str, confirmed: bool) -> None:
    """Remove an agent from the roster."""

    async def _run() -> None:
        async with open_runtime(state) as rt:
            worker = await rt.stores.agent_store.get_agent(agent)
            if worker is None:
                raise click.ClickException(f"Agent {agent} not found.")

            decision = await enforce_policy(
                rt.policy,
                AuditAction.AGENT_REMOVE.value,
                worker,
                audit=rt.audit,
            )
            if not decision.allowed:
                raise click.ClickException(f"Denied by policy: {decision.reason}")
            if decision.require_confirmation and not confirmed:
                raise click.ClickException(
                    f"Confirmation required: {decision.reason}. Re-run with --yes."
                )

            async with rt.stores.transaction():
                await rt.stores.agent_store.remove_agent(worker.agent_id)
            await record_audit(
                rt.audit,
                AuditAction.AGENT_REMOVE,
                subject_id=worker.agent_id,
                subject_name=worker.name,
            )
        click.echo(f"Agent {worker.name} removed.")

    run_async(_run())
