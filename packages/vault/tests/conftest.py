"""packages/vault 测试配置 -- 低成本 scrypt 参数"""

from pathlib import Path

import pytest

from fleetctl.vault import VaultConfig


@pytest.fixture
def fast_config() -> VaultConfig:
    """测试用 scrypt 参数，避免每次派生耗时"""
    return VaultConfig(scrypt_n=16, scrypt_r=8, scrypt_p=1)


@pytest.fixture
def vault_path(tmp_path: Path) -> Path:
    return tmp_path / "vault" / "secrets.json"
