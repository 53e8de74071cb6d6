"""SshExecutor -- 通过系统 ssh 客户端在 worker 上执行命令

每条命令一个 ssh 进程，BatchMode 禁止交互式提示。
ssh 自身失败（退出码 255）或超时视为远端不可达。
"""

import os

import structlog

from fleetctl.core.models import Worker

from .config import RemoteConfig, load_remote_config
from .exceptions import RemoteCommandError, RemoteError, RemoteUnreachableError
from .models import ExecResult
from .shell import quote_remote_path, run_process

log = structlog.get_logger()

# ssh 客户端自身错误（连接、认证、主机校验）使用的退出码
SSH_TRANSPORT_EXIT_CODE = 255


class SshExecutor:
    """RemoteExecutor 的 ssh 子进程实现"""

    def __init__(self, config: RemoteConfig | None = None) -> None:
        self._config = config or load_remote_config()
        self._target: str | None = None
        self._key_path: str | None = None

    @property
    def target(self) -> str | None:
        return self._target

    async def connect(self, worker: Worker) -> None:
        """记录目标并探测连通性"""
        self._target = f"{worker.user}@{worker.host}"
        self._key_path = os.path.expanduser(worker.ssh_key_path or self._config.ssh_key_path)
        await self.exec("true")
        log.debug("ssh_connected", target=self._target)

    async def exec(self, command: str) -> ExecResult:
        """在远端执行命令

        Raises:
            RemoteUnreachableError: ssh 无法建立连接或命令超时
        """
        return await self._run(command)

    async def put_content(self, content: str, remote_path: str) -> None:
        """通过 stdin 把内容写入远端文件

        Raises:
            RemoteCommandError: 远端写入失败（如目录不存在）
        """
        command = f"cat > {quote_remote_path(remote_path)}"
        result = await self._run(command, stdin_text=content)
        if not result.ok:
            raise RemoteCommandError(command, result.exit_code, result.stderr)

    async def disconnect(self) -> None:
        self._target = None
        self._key_path = None

    def _argv(self, command: str) -> list[str]:
        argv = [
            self._config.ssh_binary,
            "-o",
            "BatchMode=yes",
            "-o",
            f"ConnectTimeout={self._config.connect_timeout_s}",
            "-o",
            "StrictHostKeyChecking=accept-new",
        ]
        if self._key_path:
            argv += ["-i", self._key_path]
        argv += [self._target or "", command]
        return argv

    async def _run(self, command: str, stdin_text: str | None = None) -> ExecResult:
        if self._target is None:
            raise RemoteError("SshExecutor 尚未连接", recoverable=False)

        try:
            result = await run_process(
                self._argv(command),
                stdin_text=stdin_text,
                timeout_s=self._config.timeout_s,
            )
        except TimeoutError as e:
            raise RemoteUnreachableError(
                self._target,
                f"timeout after {self._config.timeout_s}s",
            ) from e
        except FileNotFoundError as e:
            raise RemoteError(
                f"找不到 ssh 可执行文件: {self._config.ssh_binary}",
                recoverable=False,
            ) from e

        if result.exit_code == SSH_TRANSPORT_EXIT_CODE:
            raise RemoteUnreachableError(self._target, result.stderr.strip() or "ssh exited 255")
        return result
