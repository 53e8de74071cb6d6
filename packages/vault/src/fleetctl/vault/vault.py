"""SecretVault -- 口令加密的单文件 secret 存储

每次变更都完整重写 vault 文件（临时文件 + os.replace，权限 0600）。
key 是唯一身份：带作用域的 set 会覆盖同名全局条目，反之亦然。

不带作用域过滤的 get / list 不做任何过滤（运维视角，能看到所有作用域的条目）。
"""

import asyncio
import json
import os
import re
from pathlib import Path

import structlog
from pydantic import ValidationError

from fleetctl.core.config import get_vault_path

from . import crypto
from .config import VaultConfig, load_vault_config
from .exceptions import InvalidPasswordError, VaultFormatError, VaultIntegrityError
from .models import SecretEntry, SecretListing, VaultFile

log = structlog.get_logger()

CHECK_PLAINTEXT = "fleetctl-vault-check"

# secret 会被写入 .env，key 必须是合法的环境变量名
_KEY_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

_FILE_MODE = 0o600


def validate_key(key: str) -> None:
    if not _KEY_PATTERN.fullmatch(key):
        raise ValueError(f"非法的 secret key: {key!r}（需为环境变量名格式）")


def validate_scope(agent_id: str | None) -> None:
    if agent_id is not None and not agent_id.strip():
        raise ValueError("作用域不能为空字符串")


class SecretVault:
    """已解锁的 vault；通过 open() 获得"""

    def __init__(self, key: bytes, salt: bytes, path: Path) -> None:
        self._key = key
        self._salt = salt
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    @classmethod
    async def open(
        cls,
        password: str,
        path: Path | None = None,
        config: VaultConfig | None = None,
    ) -> "SecretVault":
        """打开（或新建）vault

        文件存在时先校验 check 常量，口令错误时在暴露任何 secret 之前失败。

        Raises:
            ValueError: 口令为空
            InvalidPasswordError: 口令错误
            VaultIntegrityError: 加密的 secret map 被篡改
            VaultFormatError: 文件格式无法识别
        """
        if not password:
            raise ValueError("主口令不能为空")
        path = Path(path) if path is not None else get_vault_path()
        config = config or load_vault_config()

        if not path.exists():
            salt = crypto.new_salt()
            key = await asyncio.to_thread(crypto.derive_key, password, salt, config)
            vault = cls(key, salt, path)
            vault._save({})
            log.info("vault_created", path=str(path))
            return vault

        file = _read_vault_file(path)
        try:
            salt = bytes.fromhex(file.salt)
        except ValueError as e:
            raise VaultFormatError(f"vault salt 不是合法 hex: {e}") from e

        key = await asyncio.to_thread(crypto.derive_key, password, salt, config)
        try:
            check = crypto.decrypt(file.check, key)
        except VaultIntegrityError as e:
            raise InvalidPasswordError() from e
        if check != CHECK_PLAINTEXT:
            raise InvalidPasswordError()

        vault = cls(key, salt, path)
        # 提前解密一次 payload，篡改在 open 时即暴露
        vault._load()
        return vault

    async def set(self, key: str, value: str, agent_id: str | None = None) -> None:
        """写入（覆盖）secret

        Raises:
            ValueError: key 或作用域不合法
        """
        validate_key(key)
        validate_scope(agent_id)
        secrets = self._load()
        secrets[key] = SecretEntry(value=value, agent_id=agent_id)
        self._save(secrets)
        log.info("secret_set", key=key, scope=agent_id or "global")

    async def get(self, key: str, agent_id: str | None = None) -> SecretEntry | None:
        """读取 secret；作用域不匹配时视为不存在，全局条目总是可见"""
        entry = self._load().get(key)
        if entry is None:
            return None
        if agent_id and entry.agent_id and entry.agent_id != agent_id:
            return None
        return entry

    async def delete(self, key: str) -> bool:
        """删除 secret，返回是否删除了条目"""
        secrets = self._load()
        if key not in secrets:
            return False
        del secrets[key]
        self._save(secrets)
        log.info("secret_deleted", key=key)
        return True

    async def get_owner_env_entries(self, agent_id: str) -> dict[str, str]:
        """导出对某个 worker 可见的全部 secret（全局 + 该 worker 作用域）"""
        validate_scope(agent_id)
        return {
            key: entry.value
            for key, entry in self._load().items()
            if entry.agent_id is None or entry.agent_id == agent_id
        }

    def _load(self) -> dict[str, SecretEntry]:
        file = _read_vault_file(self._path)
        plaintext = crypto.decrypt(file.payload, self._key)
        try:
            raw = json.loads(plaintext)
            return {key: SecretEntry.model_validate(entry) for key, entry in raw.items()}
        except (ValueError, AttributeError) as e:
            raise VaultFormatError(f"vault payload 无法解析: {e}") from e

    def _save(self, secrets: dict[str, SecretEntry]) -> None:
        plaintext = json.dumps(
            {key: entry.model_dump() for key, entry in secrets.items()},
            ensure_ascii=False,
        )
        file = VaultFile(
            salt=self._salt.hex(),
            payload=crypto.encrypt(plaintext, self._key),
            check=crypto.encrypt(CHECK_PLAINTEXT, self._key),
        )
        _write_atomic(self._path, file.model_dump_json(indent=2) + "\n")

    # list 放在最后定义，避免遮蔽类体内其他注解中的内置 list
    async def list(self, agent_id: str | None = None) -> list[SecretListing]:
        """列出 key 与作用域，永不返回值"""
        return [
            SecretListing(key=key, agent_id=entry.agent_id)
            for key, entry in self._load().items()
            if not agent_id or entry.agent_id is None or entry.agent_id == agent_id
        ]


def _read_vault_file(path: Path) -> VaultFile:
    try:
        return VaultFile.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as e:
        raise VaultFormatError(f"无法识别的 vault 文件 {path}: {e}") from e


def _write_atomic(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.tmp")
    fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _FILE_MODE)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp, _FILE_MODE)
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
