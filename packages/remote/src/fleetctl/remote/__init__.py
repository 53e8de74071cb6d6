"""fleetctl Remote -- 远端命令执行抽象层

packages/remote 的公开接口导出。
"""

from fleetctl.core.models import Worker

from .config import RemoteConfig, load_remote_config
from .exceptions import RemoteCommandError, RemoteError, RemoteUnreachableError
from .local import LocalExecutor
from .models import ExecResult
from .protocols import ExecutorFactory, RemoteExecutor
from .shell import quote_remote_path
from .ssh import SshExecutor

# 视为控制面本机的 host 名
LOCAL_HOSTS = frozenset({"local", "localhost", "127.0.0.1"})


def default_executor_factory(worker: Worker) -> RemoteExecutor:
    """按 worker.host 选择执行器：本机 host 用 LocalExecutor，其余走 ssh"""
    if worker.host in LOCAL_HOSTS:
        return LocalExecutor()
    return SshExecutor()


__all__ = [
    "ExecResult",
    "RemoteExecutor",
    "ExecutorFactory",
    "SshExecutor",
    "LocalExecutor",
    "default_executor_factory",
    "quote_remote_path",
    "RemoteConfig",
    "load_remote_config",
    "RemoteError",
    "RemoteUnreachableError",
    "RemoteCommandError",
]
