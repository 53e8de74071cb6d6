"""命令共用的辅助函数"""

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

import rich_click as click

from fleetctl.core.exceptions import FleetError
from fleetctl.core.models import TaskStatus
from fleetctl.remote import RemoteError
from fleetctl.vault import VaultError

from ..services.runtime import CliState

T = TypeVar("T")

STATUS_COLORS = {
    TaskStatus.COMPLETED: "green",
    TaskStatus.FAILED: "red",
    TaskStatus.RUNNING: "yellow",
    TaskStatus.ASSIGNED: "yellow",
    TaskStatus.CANCELLED: "bright_black",
    TaskStatus.PENDING: "cyan",
}

pass_state = click.make_pass_decorator(CliState, ensure=True)

confirm_option = click.option(
    "--yes",
    "confirmed",
    is_flag=True,
    help="Confirm actions that policy marks as sensitive.",
)


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """执行命令协程；预期内的失败转换为非零退出码的 ClickException"""
    try:
        return asyncio.run(coro)
    except (FleetError, RemoteError, VaultError, ValueError) as e:
        raise click.ClickException(str(e)) from e


def split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def status_label(status: TaskStatus) -> str:
    return click.style(status.value, fg=STATUS_COLORS.get(status))


def format_table(header: list[str], rows: list[list[str]]) -> str:
    all_rows = [header, *rows]
    widths = [max(len(r[i]) for r in all_rows) for i in range(len(header))]

    def fmt(row: list[str]) -> str:
        return "  ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)).rstrip()

    sep = "  ".join("-" * w for w in widths)
    return "\n".join([fmt(header), sep, *(fmt(r) for r in rows)])
