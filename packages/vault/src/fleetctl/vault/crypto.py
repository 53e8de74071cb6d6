"""加密原语 -- AES-256-GCM + scrypt

- 每个 vault 文件一个 32 字节随机盐
- 每次加密一个 12 字节随机 nonce
- 认证标签与密文分开存储
"""

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from .config import VaultConfig
from .exceptions import VaultFormatError, VaultIntegrityError
from .models import EncryptedPayload

KEY_LENGTH = 32
NONCE_LENGTH = 12
TAG_LENGTH = 16
SALT_LENGTH = 32


def new_salt() -> bytes:
    return os.urandom(SALT_LENGTH)


def derive_key(password: str, salt: bytes, config: VaultConfig) -> bytes:
    """scrypt 派生 256 位密钥（CPU 密集，异步调用方应放到线程中执行）"""
    kdf = Scrypt(
        salt=salt,
        length=KEY_LENGTH,
        n=config.scrypt_n,
        r=config.scrypt_r,
        p=config.scrypt_p,
    )
    return kdf.derive(password.encode("utf-8"))


def encrypt(plaintext: str, key: bytes) -> EncryptedPayload:
    nonce = os.urandom(NONCE_LENGTH)
    sealed = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
    return EncryptedPayload(
        data=sealed[:-TAG_LENGTH].hex(),
        iv=nonce.hex(),
        tag=sealed[-TAG_LENGTH:].hex(),
    )


def decrypt(payload: EncryptedPayload, key: bytes) -> str:
    """解密并校验认证标签

    Raises:
        VaultIntegrityError: 密文、nonce 或标签被篡改（或密钥错误）
        VaultFormatError: 字段不是合法 hex
    """
    try:
        data = bytes.fromhex(payload.data)
        nonce = bytes.fromhex(payload.iv)
        tag = bytes.fromhex(payload.tag)
    except ValueError as e:
        raise VaultFormatError(f"vault 字段不是合法 hex: {e}") from e

    if len(nonce) != NONCE_LENGTH or len(tag) != TAG_LENGTH:
        raise VaultIntegrityError("nonce 或认证标签长度不符")

    try:
        plaintext = AESGCM(key).decrypt(nonce, data + tag, None)
    except InvalidTag as e:
        raise VaultIntegrityError("认证失败：vault 内容被篡改或密钥错误") from e
    return plaintext.decode("utf-8")
