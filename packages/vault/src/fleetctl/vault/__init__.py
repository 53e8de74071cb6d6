"""fleetctl Vault -- 口令加密的 secret 存储

packages/vault 的公开接口导出。
"""

from .config import VaultConfig, load_vault_config
from .exceptions import (
    InvalidPasswordError,
    VaultError,
    VaultFormatError,
    VaultIntegrityError,
)
from .models import EncryptedPayload, SecretEntry, SecretListing, VaultFile
from .session import VaultSession
from .vault import CHECK_PLAINTEXT, SecretVault, validate_key

__all__ = [
    "SecretVault",
    "VaultSession",
    "VaultConfig",
    "load_vault_config",
    "SecretEntry",
    "SecretListing",
    "EncryptedPayload",
    "VaultFile",
    "CHECK_PLAINTEXT",
    "validate_key",
    "VaultError",
    "InvalidPasswordError",
    "VaultIntegrityError",
    "VaultFormatError",
]
