"""secrets 命令组 -- 加密 vault 的读写与推送

主口令在进程内只提示一次（VaultSession），口令错误时清空缓存。
"""

import rich_click as click

from fleetctl.core.models import Worker

from ..services.runtime import CliState, Runtime, open_runtime
from ..services.secrets_service import PushOutcome, PushStatus, SecretsService
from ._common import confirm_option, format_table, pass_state, run_async


def _service(state: CliState, rt: Runtime) -> SecretsService:
    return SecretsService(
        state.vault_session,
        rt.executor_factory,
        audit=rt.audit,
        policy=rt.policy,
    )


async def _resolve_agent(rt: Runtime, agent: str | None) -> Worker | None:
    if agent is None:
        return None
    worker = await rt.stores.agent_store.get_agent(agent)
    if worker is None:
        raise click.ClickException(f"Agent {agent} not found.")
    return worker


@click.group()
def secrets() -> None:
    """Manage the encrypted secrets vault."""


@secrets.command("set")
@click.argument("key")
@click.argument("value")
@click.option("--agent", default=None, help="Scope the secret to an agent (name or ID).")
@pass_state
def set_secret(state: CliState, key: str, value: str, agent: str | None) -> None:
    """Store a secret, optionally scoped to an agent."""

    async def _run() -> None:
        async with open_runtime(state) as rt:
            worker = await _resolve_agent(rt, agent)
            await _service(state, rt).set(key, value, worker)
        scope = f" (agent: {worker.name})" if worker else " (global)"
        click.echo(f"Secret {click.style(key, bold=True)} stored{scope}")

    run_async(_run())


@secrets.command("get")
@click.argument("key")
@click.option("--agent", default=None, help="Only return the secret if visible to this agent.")
@pass_state
def get_secret(state: CliState, key: str, agent: str | None) -> None:
    """Print a secret value."""

    async def _run() -> None:
        async with open_runtime(state) as rt:
            worker = await _resolve_agent(rt, agent)
            entry = await _service(state, rt).get(key, worker.agent_id if worker else None)
        if entry is None:
            raise click.ClickException(f"Secret {key} not found.")
        click.echo(entry.value)

    run_async(_run())


@secrets.command("list")
@click.option("--agent", default=None, help="Only list secrets visible to this agent.")
@pass_state
def list_secrets(state: CliState, agent: str | None) -> None:
    """List secret keys and scopes (never values)."""

    async def _run() -> None:
        async with open_runtime(state) as rt:
            worker = await _resolve_agent(rt, agent)
            entries = await _service(state, rt).list(worker.agent_id if worker else None)
        if not entries:
            click.echo("No secrets stored.")
            return
        click.echo(format_table(["KEY", "SCOPE"], [[e.key, e.scope] for e in entries]))

    run_async(_run())


@secrets.command("delete")
@click.argument("key")
@pass_state
def delete_secret(state: CliState, key: str) -> None:
    """Delete a secret."""

    async def _run() -> None:
        async with open_runtime(state) as rt:
            removed = await _service(state, rt).delete(key)
        if not removed:
            raise click.ClickException(f"Secret {key} not found.")
        click.echo(f"Secret {key} deleted.")

    run_async(_run())


@secrets.command("push")
@click.argument("agents", nargs=-1, required=True)
@click.option("--merge", is_flag=True, help="Merge into the existing .env instead of replacing it.")
@confirm_option
@click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Agents pushed concurrently.",
)
@click.option(
    "--pause",
    "pause_s",
    type=click.FloatRange(min=0),
    default=0,
    show_default=True,
    help="Seconds to pause between batches.",
)
@pass_state
def push_secrets(
    state: CliState,
    agents: tuple[str, ...],
    merge: bool,
    confirmed: bool,
    concurrency: int,
    pause_s: float,
) -> None:
    """Push scoped secrets to one or more agents' .env files."""

    async def _run() -> None:
        async with open_runtime(state) as rt:
            workers = [await _resolve_agent(rt, a) for a in agents]
            report = await _service(state, rt).push_many(
                workers,
                merge=merge,
                confirmed=confirmed,
                concurrency=concurrency,
                pause_s=pause_s,
            )

        blocked = 0
        for _worker, outcome in report.succeeded:
            blocked += not _report_push(outcome)
        for worker, error in report.failed:
            click.secho(f"Push to {worker.name} failed: {error}", fg="red")
        if report.failed or blocked:
            raise click.ClickException(f"{len(report.failed) + blocked} push(es) did not complete.")

    run_async(_run())


def _report_push(outcome: PushOutcome) -> bool:
    """打印单个推送结果，返回是否算作成功"""
    match outcome.status:
        case PushStatus.PUSHED:
            name = click.style(outcome.agent_name, bold=True)
            click.echo(f"Pushed {len(outcome.keys)} secret(s) to {name}:")
            for key in outcome.keys:
                click.echo(f"  {key}")
            return True
        case PushStatus.NOTHING_TO_PUSH:
            click.echo(f"No secrets to push for agent {outcome.agent_name}.")
            return True
        case PushStatus.CONFIRMATION_REQUIRED:
            click.secho(
                f"{outcome.agent_name}: confirmation required ({outcome.reason}). "
                "Re-run with --yes.",
                fg="yellow",
            )
            return False
        case _:
            click.secho(f"{outcome.agent_name}: denied by policy ({outcome.reason})", fg="red")
            return False
