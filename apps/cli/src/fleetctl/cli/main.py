"""CLI entrypoint for fleetctl."""

import rich_click as click

from fleetctl.core.logging_config import setup_logging

from .commands.agents import agents
from .commands.audit import audit
from .commands.policy import policy
from .commands.secrets import secrets
from .commands.tasks import tasks
from .services.runtime import CliState

click.rich_click.USE_MARKDOWN = True


@click.group()
@click.version_option(package_name="fleetctl", prog_name="fleetctl")
@click.pass_context
def fleetctl(ctx: click.Context) -> None:
    """Fleet control plane: route tasks to workers and manage their secrets."""
    setup_logging(default_level="WARNING")
    ctx.ensure_object(CliState)


fleetctl.add_command(tasks)
fleetctl.add_command(secrets)
fleetctl.add_command(agents)
fleetctl.add_command(audit)
fleetctl.add_command(policy)


if __name__ == "__main__":  # pragma: no cover
    fleetctl()
