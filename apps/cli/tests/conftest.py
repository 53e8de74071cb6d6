"""apps/cli 测试配置 -- CliRunner + 隔离的数据目录 + 本机执行器"""

from collections.abc import Callable
from pathlib import Path

import pytest
from click.testing import CliRunner, Result

from fleetctl.cli.main import fleetctl
from fleetctl.cli.services.runtime import CliState
from fleetctl.remote import LocalExecutor

MASTER_PASSWORD = "correct horse"


@pytest.fixture
def remote_root(tmp_path: Path) -> Path:
    """本机 worker 的 HOME 目录"""
    root = tmp_path / "remote"
    root.mkdir()
    return root


@pytest.fixture
def prompts() -> list[str]:
    """记录口令提示次数"""
    return []


@pytest.fixture
def cli_state(remote_root: Path, prompts: list[str]) -> Callable[..., CliState]:
    def _make(password: str = MASTER_PASSWORD) -> CliState:
        def prompt(message: str) -> str:
            prompts.append(message)
            return password

        return CliState(
            executor_factory=lambda worker: LocalExecutor(root=remote_root),
            prompt=prompt,
        )

    return _make


@pytest.fixture
def invoke(fleet_env: Path, cli_state) -> Callable[..., Result]:
    """调用 fleetctl；每次调用使用新的 CliState（模拟独立进程）"""
    runner = CliRunner()

    def _invoke(*args: str, password: str = MASTER_PASSWORD) -> Result:
        return runner.invoke(fleetctl, list(args), obj=cli_state(password))

    return _invoke


@pytest.fixture
def add_agent(invoke) -> Callable[..., None]:
    """通过 CLI 登记一个本机 worker"""

    def _add(name: str = "alpha", *extra: str) -> None:
        result = invoke(
            "agents", "add", name, "--host", "local", "--status", "online", "--workspace", "~/ws", *extra
        )
        assert result.exit_code == 0, result.output

    return _add


def task_id_from(output: str) -> str:
    for line in output.splitlines():
        if line.startswith("Task created: "):
            return line.removeprefix("Task created: ").strip()
    raise AssertionError(f"no task id in output:\n{output}")


@pytest.fixture
def created_task_id() -> Callable[[str], str]:
    return task_id_from
