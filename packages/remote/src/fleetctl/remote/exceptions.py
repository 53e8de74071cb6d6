"""Remote 异常体系

传输层失败一律是可恢复的：调用方保持任务状态不变，稍后重试。
"""


class RemoteError(Exception):
    """Remote 包基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class RemoteUnreachableError(RemoteError):
    """远端不可达（连接失败、超时、认证失败等）"""

    def __init__(self, target: str, original_error: Exception | str) -> None:
        """
        Args:
            target: 尝试连接的目标（user@host）
            original_error: 原始异常或 ssh 的错误输出
        """
        super().__init__(f"远端不可达: {target} -- {original_error}", recoverable=True)
        self.target = target
        self.original_error = original_error


class RemoteCommandError(RemoteError):
    """远端命令执行返回非零退出码"""

    def __init__(self, command: str, exit_code: int | None, stderr: str) -> None:
        super().__init__(
            f"远端命令失败 (exit={exit_code}): {command} -- {stderr.strip()}",
            recoverable=True,
        )
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
