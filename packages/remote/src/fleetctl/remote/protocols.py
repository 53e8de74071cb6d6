"""RemoteExecutor Protocol 接口定义

派发通道只使用 exec / put_content，不需要交互式 shell。
"""

from collections.abc import Callable
from typing import Protocol

from fleetctl.core.models import Worker

from .models import ExecResult


class RemoteExecutor(Protocol):
    """远端执行器接口"""

    async def connect(self, worker: Worker) -> None:
        """建立到 worker 的连接"""
        ...

    async def exec(self, command: str) -> ExecResult:
        """执行一条 shell 命令"""
        ...

    async def put_content(self, content: str, remote_path: str) -> None:
        """把文本写入远端文件（覆盖）"""
        ...

    async def disconnect(self) -> None:
        """释放连接；可重复调用"""
        ...


ExecutorFactory = Callable[[Worker], RemoteExecutor]
