"""VaultSession -- 单进程内的主口令缓存

由入口（CLI）创建并持有：第一次需要时提示输入，口令错误时清空，进程退出即丢弃。
"""

from collections.abc import Callable
from pathlib import Path

from .config import VaultConfig
from .exceptions import InvalidPasswordError
from .vault import SecretVault

PASSWORD_PROMPT = "Master password"


class VaultSession:
    """缓存主口令，按需打开 vault"""

    def __init__(
        self,
        prompt: Callable[[str], str],
        path: Path | None = None,
        config: VaultConfig | None = None,
    ) -> None:
        self._prompt = prompt
        self._path = path
        self._config = config
        self._password: str | None = None

    @property
    def has_password(self) -> bool:
        return self._password is not None

    async def open(self) -> SecretVault:
        """打开 vault；口令错误时清空缓存，下次重新提示

        Raises:
            InvalidPasswordError: 口令错误
        """
        if self._password is None:
            self._password = self._prompt(PASSWORD_PROMPT)
        try:
            return await SecretVault.open(self._password, path=self._path, config=self._config)
        except (InvalidPasswordError, ValueError):
            self.clear()
            raise

    def clear(self) -> None:
        self._password = None
