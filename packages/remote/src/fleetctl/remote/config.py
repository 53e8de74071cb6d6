"""RemoteConfig -- SSH 执行器配置加载

从环境变量加载配置，不在代码中硬编码主机或密钥。
"""

import os

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()


class RemoteConfig(BaseModel):
    """Remote 包配置 -- 从环境变量加载

    环境变量:
        FLEETCTL_SSH_BINARY: ssh 可执行文件（默认 ssh）
        FLEETCTL_SSH_KEY_PATH: 默认私钥路径（默认 ~/.ssh/id_ed25519）
        FLEETCTL_SSH_TIMEOUT_S: 单条命令超时（秒，默认 30）
    """

    ssh_binary: str = Field(default="ssh", description="ssh 可执行文件")
    ssh_key_path: str = Field(
        default="~/.ssh/id_ed25519",
        description="worker 未指定私钥时使用的默认私钥",
    )
    timeout_s: int = Field(default=30, ge=1, description="单条远端命令超时（秒）")
    connect_timeout_s: int = Field(default=10, ge=1, description="SSH 建连超时（秒）")


def load_remote_config() -> RemoteConfig:
    """从环境变量加载 Remote 配置

    Returns:
        RemoteConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("FLEETCTL_SSH_BINARY"):
        kwargs["ssh_binary"] = val

    if val := os.environ.get("FLEETCTL_SSH_KEY_PATH"):
        kwargs["ssh_key_path"] = val

    if val := os.environ.get("FLEETCTL_SSH_TIMEOUT_S"):
        try:
            kwargs["timeout_s"] = int(val)
        except ValueError:
            log.warning(
                "invalid_timeout_config",
                env_var="FLEETCTL_SSH_TIMEOUT_S",
                value=val,
                fallback=30,
            )
            # 使用默认值，不阻塞启动

    return RemoteConfig(**kwargs)
