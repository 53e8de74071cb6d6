"""VaultConfig -- 口令派生参数配置

scrypt 成本参数可通过环境变量调整（测试中使用低成本参数）。
"""

import os

import structlog
from pydantic import BaseModel, Field, field_validator

log = structlog.get_logger()

DEFAULT_SCRYPT_N = 2**14
DEFAULT_SCRYPT_R = 8
DEFAULT_SCRYPT_P = 1


class VaultConfig(BaseModel):
    """Vault 包配置 -- 从环境变量加载

    环境变量:
        FLEETCTL_VAULT_SCRYPT_N: scrypt CPU/内存成本（2 的幂，默认 16384）
        FLEETCTL_VAULT_SCRYPT_R: scrypt 块大小（默认 8）
        FLEETCTL_VAULT_SCRYPT_P: scrypt 并行度（默认 1）
    """

    scrypt_n: int = Field(default=DEFAULT_SCRYPT_N, ge=2, description="scrypt 成本参数 N")
    scrypt_r: int = Field(default=DEFAULT_SCRYPT_R, ge=1, description="scrypt 块大小 r")
    scrypt_p: int = Field(default=DEFAULT_SCRYPT_P, ge=1, description="scrypt 并行度 p")

    @field_validator("scrypt_n")
    @classmethod
    def _power_of_two(cls, v: int) -> int:
        if v & (v - 1):
            raise ValueError("scrypt_n 必须是 2 的幂")
        return v


_ENV_FIELDS = {
    "FLEETCTL_VAULT_SCRYPT_N": ("scrypt_n", DEFAULT_SCRYPT_N),
    "FLEETCTL_VAULT_SCRYPT_R": ("scrypt_r", DEFAULT_SCRYPT_R),
    "FLEETCTL_VAULT_SCRYPT_P": ("scrypt_p", DEFAULT_SCRYPT_P),
}


def load_vault_config() -> VaultConfig:
    """从环境变量加载 Vault 配置

    无法解析的数值记录 warning 并使用默认值。

    Returns:
        VaultConfig 实例
    """
    kwargs: dict = {}

    for env_var, (field, default) in _ENV_FIELDS.items():
        if val := os.environ.get(env_var):
            try:
                kwargs[field] = int(val)
            except ValueError:
                log.warning(
                    "invalid_vault_config",
                    env_var=env_var,
                    value=val,
                    fallback=default,
                )

    return VaultConfig(**kwargs)
