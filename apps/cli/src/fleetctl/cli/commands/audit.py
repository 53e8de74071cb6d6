"""audit 命令组 -- 查看审计记录"""

import json

import rich_click as click

from fleetctl.core.models import AuditAction

from ..services.runtime import CliState, open_runtime
from ._common import format_table, pass_state, run_async


@click.group()
def audit() -> None:
    """Inspect the audit log."""


@audit.command("list")
@click.option(
    "--action",
    type=click.Choice([a.value for a in AuditAction]),
    default=None,
    help="Filter by action.",
)
@click.option("--agent", default=None, help="Filter by subject agent (name or ID).")
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=1000),
    default=50,
    show_default=True,
    help="Max entries to show.",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@pass_state
def list_audit(
    state: CliState,
    action: str | None,
    agent: str | None,
    limit: int,
    as_json: bool,
) -> None:
    """Show the most recent audit entries."""

    async def _run() -> None:
        async with open_runtime(state) as rt:
            subject_id = None
            if agent:
                worker = await rt.stores.agent_store.get_agent(agent)
                subject_id = worker.agent_id if worker else agent
            entries = await rt.stores.audit_store.query(
                action=action,
                subject_id=subject_id,
                limit=limit,
            )

        if as_json:
            click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
            return
        if not entries:
            click.echo("No audit entries.")
            return
        rows = [
            [
                e.ts.strftime("%Y-%m-%d %H:%M:%S"),
                e.action.value,
                e.subject_name or e.subject_id or "-",
                "ok" if e.success else f"FAILED: {e.error or ''}",
            ]
            for e in entries
        ]
        click.echo(format_table(["TIME", "ACTION", "SUBJECT", "RESULT"], rows))

    run_async(_run())
