"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、vault 文件、policy 文件、轮询间隔等可配置常量。
"""

import os
from pathlib import Path


def _get_base_dir() -> Path:
    """获取控制面 data 基础目录"""
    return Path(os.environ.get("FLEETCTL_DATA_DIR", "~/.fleetctl")).expanduser()


def get_db_path() -> str:
    """获取 SQLite 数据库路径（tasks / agents / audit_log 共用）"""
    return os.environ.get(
        "FLEETCTL_DB_PATH",
        str(_get_base_dir() / "fleetctl.db"),
    )


def get_vault_path() -> Path:
    """获取加密 vault 文件路径"""
    return Path(
        os.environ.get(
            "FLEETCTL_VAULT_PATH",
            str(_get_base_dir() / "secrets.json"),
        )
    ).expanduser()


def get_policy_path() -> Path:
    """获取 policy 规则文件路径"""
    return Path(
        os.environ.get(
            "FLEETCTL_POLICY_PATH",
            str(_get_base_dir() / "policy.json"),
        )
    ).expanduser()


def get_remote_workspace() -> str:
    """worker 记录未指定 workspace 时使用的远端工作目录"""
    return os.environ.get("FLEETCTL_REMOTE_WORKSPACE", "~/.openclaw/workspace")


# poll --wait 循环的重试间隔（秒）
POLL_INTERVAL_S: int = int(os.environ.get("FLEETCTL_POLL_INTERVAL_S", "10"))

# 远端 .env 所在目录（secrets push 目标）
REMOTE_ENV_DIR: str = "~/.openclaw"

# 列表输出时结果预览截断长度
RESULT_PREVIEW_LENGTH: int = 100
