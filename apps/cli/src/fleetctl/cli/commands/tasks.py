"""tasks 命令组 -- 创建、路由、派发、轮询与终结任务"""

import rich_click as click

from fleetctl.core.batch import run_in_batches
from fleetctl.core.config import POLL_INTERVAL_S, RESULT_PREVIEW_LENGTH
from fleetctl.core.models import Task, TaskStatus, Worker
from fleetctl.core.tasks import (
    DispatchOutcome,
    DispatchStatus,
    PollOutcome,
    PollStatus,
    preview_task,
)

from ..services.runtime import CliState, Runtime, open_runtime
from ._common import confirm_option, pass_state, run_async, split_csv, status_label


@click.group()
def tasks() -> None:
    """Manage delegated tasks."""


@tasks.command("create")
@click.option("--title", required=True, help="Task title.")
@click.option("--description", default="", help="Task instructions for the worker.")
@click.option("--capabilities", default=None, help="Required capabilities (comma-separated).")
@click.option("--assign", "assign_to", default=None, help="Force assign to an agent (name or ID).")
@click.option("--timeout", type=click.IntRange(min=1), default=None, help="Timeout in seconds.")
@click.option(
    "--dispatch",
    "dispatch_now",
    is_flag=True,
    help="Dispatch immediately to the assigned agent.",
)
@confirm_option
@pass_state
def create_task(
    state: CliState,
    title: str,
    description: str,
    capabilities: str | None,
    assign_to: str | None,
    timeout: int | None,
    dispatch_now: bool,
    confirmed: bool,
) -> None:
    """Create a task, route it, and optionally dispatch it."""

    async def _run() -> None:
        async with open_runtime(state) as rt:
            roster = await rt.stores.agent_store.list_agents()
            forced: Worker | None = None
            if assign_to:
                forced = await rt.stores.agent_store.get_agent(assign_to)
                if forced is None:
                    click.secho(f'Agent "{assign_to}" not found, auto-routing...', fg="yellow")

            task, route = await rt.orchestrator.create_and_route(
                title,
                description,
                requested_by=state.actor,
                roster=roster,
                required_capabilities=split_csv(capabilities),
                timeout_seconds=timeout,
                assign_to=forced,
            )
            click.echo(click.style("Task created: ", bold=True) + task.task_id)

            if route is None:
                click.secho("No suitable agent found. Task is pending.", fg="yellow")
                click.secho("  Tip: add capabilities to agents with --capabilities", dim=True)
                return
            if forced is not None:
                click.echo(f"Assigned to: {click.style(route.worker.name, bold=True)} (manual)")
            else:
                name = click.style(route.worker.name, bold=True)
                click.echo(f"Routed to: {name} (score: {route.score})")
                click.secho(f"  Reason: {route.reason}", dim=True)

            if dispatch_now:
                outcome = await rt.orchestrator.dispatch(
                    task.task_id, route.worker, confirmed=confirmed
                )
                _report_dispatch(outcome, route.worker)

    run_async(_run())


@tasks.command("list")
@click.option(
    "--status",
    type=click.Choice([s.value for s in TaskStatus]),
    default=None,
    help="Filter by status.",
)
@click.option("--agent", default=None, help="Filter by assigned agent (name or ID).")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@pass_state
def list_tasks(state: CliState, status: str | None, agent: str | None, as_json: bool) -> None:
    """List tasks in creation order."""

    async def _run() -> None:
        async with open_runtime(state) as rt:
            assigned_to = None
            if agent:
                worker = await rt.stores.agent_store.get_agent(agent)
                assigned_to = worker.agent_id if worker else agent
            task_list = await rt.orchestrator.list_tasks(status=status, assigned_to=assigned_to)

        if as_json:
            click.echo("[" + ",\n".join(t.model_dump_json(indent=2) for t in task_list) + "]")
            return
        if not task_list:
            click.echo("No tasks found.")
            return
        for task in task_list:
            _print_task_summary(task)

    run_async(_run())


@tasks.command("info")
@click.argument("task_id")
@pass_state
def task_info(state: CliState, task_id: str) -> None:
    """Show task details as JSON."""

    async def _run() -> None:
        async with open_runtime(state) as rt:
            task = await rt.orchestrator.get_task(task_id)
        if task is None:
            raise click.ClickException("Task not found.")
        click.echo(task.model_dump_json(indent=2))

    run_async(_run())


@tasks.command("route")
@click.option("--title", required=True, help="Task title.")
@click.option("--description", default="", help="Task description.")
@click.option("--capabilities", default=None, help="Required capabilities (comma-separated).")
@pass_state
def route_preview(state: CliState, title: str, description: str, capabilities: str | None) -> None:
    """Show which agent would handle a task (dry run)."""

    async def _run() -> None:
        async with open_runtime(state) as rt:
            roster = await rt.stores.agent_store.list_agents()
        task = preview_task(title, description, split_csv(capabilities))
        results = rt.orchestrator.route(task, roster)
        if not results:
            click.secho("No agents match. Add capabilities to your agents.", fg="yellow")
            return
        click.secho("Routing candidates:\n", bold=True)
        for r in results:
            click.echo(f"  {click.style(r.worker.name, bold=True)} - score: {r.score}")
            click.secho(f"    {r.reason}", dim=True)

    run_async(_run())


@tasks.command("dispatch")
@click.argument("task_id")
@confirm_option
@pass_state
def dispatch_task(state: CliState, task_id: str, confirmed: bool) -> None:
    """Dispatch an assigned task to its worker."""

    async def _run() -> None:
        async with open_runtime(state) as rt:
            task, worker = await _task_and_worker(rt, task_id)
            outcome = await rt.orchestrator.dispatch(task.task_id, worker, confirmed=confirmed)
        _report_dispatch(outcome, worker)

    run_async(_run())


@tasks.command("poll")
@click.argument("task_id", required=False)
@click.option(
    "--wait",
    "wait_s",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
    help="Poll repeatedly for up to this many seconds.",
)
@click.option("--all", "poll_all", is_flag=True, help="Poll every running task once.")
@click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Workers polled concurrently with --all.",
)
@pass_state
def poll_task(
    state: CliState,
    task_id: str | None,
    wait_s: int,
    poll_all: bool,
    concurrency: int,
) -> None:
    """Check whether a dispatched task has finished."""
    if not poll_all and not task_id:
        raise click.UsageError("Pass a TASK_ID or --all.")

    async def _run_one() -> None:
        async with open_runtime(state) as rt:
            task, worker = await _task_and_worker(rt, task_id)
            if wait_s:
                click.secho(f"Polling every {POLL_INTERVAL_S}s for up to {wait_s}s...", dim=True)
            outcome = await rt.orchestrator.poll_until_done(task.task_id, worker, wait_s)
        _report_poll(outcome, waited=bool(wait_s))

    async def _run_all() -> None:
        async with open_runtime(state) as rt:
            running = await rt.orchestrator.list_tasks(status=TaskStatus.RUNNING)
            if not running:
                click.echo("No running tasks.")
                return

            async def _poll(task: Task) -> PollOutcome | None:
                worker = await rt.stores.agent_store.get_agent(task.assigned_to or "")
                if worker is None:
                    raise click.ClickException(f"Agent for task {task.task_id} not found.")
                return await rt.orchestrator.poll(task.task_id, worker)

            report = await run_in_batches(running, _poll, concurrency=concurrency)

        for task, outcome in report.succeeded:
            status = outcome.status.value if outcome else "missing"
            click.echo(f"{task.task_id}  {task.title}: {status}")
        for task, error in report.failed:
            click.secho(f"{task.task_id}  {task.title}: poll error: {error}", fg="red")
        if not report.ok:
            raise click.ClickException(f"{len(report.failed)} task(s) could not be polled.")

    run_async(_run_all() if poll_all else _run_one())


@tasks.command("complete")
@click.argument("task_id")
@click.option("--result", required=True, help="Task result.")
@pass_state
def complete_task(state: CliState, task_id: str, result: str) -> None:
    """Mark a task as completed with a result."""

    async def _run() -> None:
        async with open_runtime(state) as rt:
            task = await rt.orchestrator.complete(task_id, result)
        if task is None:
            raise click.ClickException("Task not found.")
        click.secho("Task completed.", fg="green")

    run_async(_run())


@tasks.command("fail")
@click.argument("task_id")
@click.option("--error", required=True, help="Error message.")
@pass_state
def fail_task(state: CliState, task_id: str, error: str) -> None:
    """Mark a task as failed."""

    async def _run() -> None:
        async with open_runtime(state) as rt:
            task = await rt.orchestrator.fail(task_id, error)
        if task is None:
            raise click.ClickException("Task not found.")
        click.secho("Task marked as failed.", fg="red")

    run_async(_run())


@tasks.command("cancel")
@click.argument("task_id")
@pass_state
def cancel_task(state: CliState, task_id: str) -> None:
    """Cancel a pending, assigned or running task."""

    async def _run() -> None:
        async with open_runtime(state) as rt:
            task = await rt.orchestrator.cancel(task_id)
        if task is None:
            raise click.ClickException("Task not found.")
        click.secho("Task cancelled.", dim=True)

    run_async(_run())


@tasks.command("sweep")
@pass_state
def sweep_tasks(state: CliState) -> None:
    """Fail tasks that exceeded their timeout."""

    async def _run() -> None:
        async with open_runtime(state) as rt:
            count = await rt.orchestrator.sweep_timeouts()
        if count == 0:
            click.echo("No overdue tasks.")
        else:
            click.secho(f"Timed out {count} task(s).", fg="yellow")

    run_async(_run())


async def _task_and_worker(rt: Runtime, task_id: str) -> tuple[Task, Worker]:
    task = await rt.orchestrator.get_task(task_id)
    if task is None:
        raise click.ClickException("Task not found.")
    if not task.assigned_to:
        raise click.ClickException("Task is not assigned to any agent.")
    worker = await rt.stores.agent_store.get_agent(task.assigned_to)
    if worker is None:
        raise click.ClickException("Assigned agent not found in registry.")
    return task, worker


def _report_dispatch(outcome: DispatchOutcome, worker: Worker) -> None:
    if outcome.status == DispatchStatus.DISPATCHED:
        click.secho(f"Task dispatched to {worker.name}.", fg="green")
        click.secho(f"  {outcome.reason}", dim=True)
        return
    if outcome.status == DispatchStatus.CONFIRMATION_REQUIRED:
        raise click.ClickException(f"Confirmation required: {outcome.reason}. Re-run with --yes.")
    if outcome.status == DispatchStatus.DENIED:
        raise click.ClickException(f"Denied by policy: {outcome.reason}")
    if outcome.retryable:
        raise click.ClickException(
            f"Dispatch failed: {outcome.reason}\n"
            "Task is still assigned. Use `fleetctl tasks dispatch` to retry."
        )
    raise click.ClickException(outcome.reason)


def _report_poll(outcome: PollOutcome | None, waited: bool) -> None:
    if outcome is None:
        raise click.ClickException("Task not found.")

    if outcome.transport_error:
        click.secho(f"Poll error: {outcome.transport_error}", fg="yellow")

    match outcome.status:
        case PollStatus.COMPLETED:
            click.secho("Task completed!", fg="green")
            click.echo(outcome.result or "")
        case PollStatus.FAILED:
            click.secho("Task failed.", fg="red")
            click.echo(outcome.error or "")
        case PollStatus.CANCELLED:
            click.secho("Task was cancelled.", dim=True)
        case PollStatus.PENDING:
            raise click.ClickException("Task has not been dispatched yet.")
        case PollStatus.RUNNING:
            if waited:
                click.secho("Timeout reached. Task still running.", fg="yellow")
            else:
                click.secho("Still running...", fg="yellow")


def _print_task_summary(task: Task) -> None:
    click.echo(f"{click.style(task.title, bold=True)} {status_label(task.status)}")
    click.secho(f"  ID: {task.task_id}", dim=True)
    if task.assigned_to_name:
        click.echo(f"  Agent: {task.assigned_to_name}")
    if task.routing_reason:
        click.secho(f"  Route: {task.routing_reason}", dim=True)
    if task.result:
        preview = task.result[:RESULT_PREVIEW_LENGTH]
        suffix = "..." if len(task.result) > RESULT_PREVIEW_LENGTH else ""
        click.echo(f"  Result: {preview}{suffix}")
    if task.error:
        click.secho(f"  Error: {task.error}", fg="red")
    click.secho(f"  Created: {task.created_at.isoformat()}", dim=True)
    click.echo("")
