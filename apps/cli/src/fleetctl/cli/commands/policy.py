"""policy 命令组 -- 查看与初始化 policy 规则"""

import rich_click as click

from fleetctl.core.config import get_policy_path
from fleetctl.core.models import PolicyEffect
from fleetctl.core.policy import PolicyEngine

from ..services.runtime import CliState, open_runtime
from ._common import pass_state, run_async


@click.group()
def policy() -> None:
    """Inspect and initialise policy rules."""


@policy.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def list_rules(as_json: bool) -> None:
    """List policy rules in evaluation order."""
    engine = PolicyEngine.load(get_policy_path())
    if as_json:
        click.echo(engine.get_policy().model_dump_json(indent=2))
        return

    current = engine.get_policy()
    click.echo(f"Default effect: {current.default_effect.value}")
    rules = engine.get_rules()
    if not rules:
        click.echo("No rules.")
        return
    for rule in rules:
        color = "green" if rule.effect == PolicyEffect.ALLOW else "red"
        confirm = " (confirm)" if rule.require_confirmation else ""
        effect = click.style(rule.effect.value, fg=color)
        click.echo(f"{click.style(rule.id, bold=True)}  {rule.action}  {effect}{confirm}")
        if rule.description:
            click.secho(f"  {rule.description}", dim=True)
        for cond in rule.conditions:
            click.secho(f"  when {cond.field} {cond.op} {cond.value}", dim=True)


@policy.command("check")
@click.argument("action")
@click.argument("agent", required=False)
@pass_state
def check_action(state: CliState, action: str, agent: str | None) -> None:
    """Evaluate an action (optionally against an agent) without performing it."""

    async def _run() -> None:
        async with open_runtime(state) as rt:
            worker = None
            if agent:
                worker = await rt.stores.agent_store.get_agent(agent)
                if worker is None:
                    raise click.ClickException(f"Agent {agent} not found.")
        decision = rt.policy.evaluate(action, worker)
        if decision.allowed:
            verdict = click.style("ALLOWED", fg="green")
        else:
            verdict = click.style("DENIED", fg="red")
        click.echo(f"{action}: {verdict}")
        if decision.require_confirmation:
            click.secho("  Requires confirmation", fg="yellow")
        click.secho(f"  {decision.reason}", dim=True)

    run_async(_run())


@policy.command("init")
def init_policy() -> None:
    """Write the default policy file if none exists."""
    path = get_policy_path()
    engine = PolicyEngine.load(path)
    if engine.init():
        click.echo(f"Default policy written to {path}")
    else:
        click.echo(f"Policy file already exists at {path}")
