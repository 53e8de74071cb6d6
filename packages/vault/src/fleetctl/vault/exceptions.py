"""Vault 异常体系

所有 vault 异常都不可通过简单重试恢复；
InvalidPasswordError 之后需要重新输入口令。
"""


class VaultError(Exception):
    """Vault 包基础异常"""

    def __init__(self, message: str, recoverable: bool = False) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class InvalidPasswordError(VaultError):
    """主口令错误：check 值解密失败或内容不符"""

    def __init__(self) -> None:
        super().__init__("Invalid master password.", recoverable=True)


class VaultIntegrityError(VaultError):
    """密文或认证标签被篡改，解密失败"""


class VaultFormatError(VaultError):
    """vault 文件不是可识别的格式"""
