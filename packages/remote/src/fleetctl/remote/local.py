"""LocalExecutor -- 与控制面同机的 worker

命令在本机 shell 中执行，HOME 指向 root 目录，
因此 "~/.openclaw/workspace" 之类的远端路径落在 root 之下。
"""

import os
from pathlib import Path

from fleetctl.core.models import Worker

from .exceptions import RemoteError, RemoteUnreachableError
from .models import ExecResult
from .shell import run_process


class LocalExecutor:
    """RemoteExecutor 的本机实现"""

    def __init__(self, root: Path | None = None, timeout_s: float = 30) -> None:
        self._root = Path(root) if root is not None else Path.home()
        self._timeout_s = timeout_s
        self._connected = False

    async def connect(self, worker: Worker) -> None:
        if not self._root.is_dir():
            raise RemoteUnreachableError(f"local:{worker.name}", f"{self._root} 不是目录")
        self._connected = True

    async def exec(self, command: str) -> ExecResult:
        self._ensure_connected()
        try:
            return await run_process(
                shell_command=command,
                timeout_s=self._timeout_s,
                env={**os.environ, "HOME": str(self._root)},
            )
        except TimeoutError as e:
            raise RemoteUnreachableError("local", f"timeout after {self._timeout_s}s") from e

    async def put_content(self, content: str, remote_path: str) -> None:
        self._ensure_connected()
        path = self.resolve(remote_path)
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise RemoteError(f"写入 {path} 失败: {e}") from e

    async def disconnect(self) -> None:
        self._connected = False

    def resolve(self, remote_path: str) -> Path:
        """把远端路径映射为本机路径"""
        if remote_path == "~":
            return self._root
        if remote_path.startswith("~/"):
            return self._root / remote_path[2:]
        return Path(remote_path)

    def _ensure_connected(self) -> None:
        if not self._connected:
            raise RemoteError("LocalExecutor 尚未连接", recoverable=False)
