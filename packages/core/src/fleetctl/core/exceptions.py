"""Core 异常体系

预期内的情况（not-found、仍在运行、policy 拒绝）以返回值表达，
此处仅定义需要向上传播的异常。
"""


class FleetError(Exception):
    """fleetctl 基础异常"""

    def __init__(self, message: str, recoverable: bool = False) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class TaskTransitionError(FleetError, ValueError):
    """非法的状态流转（例如对终态任务再次操作）"""

    def __init__(self, task_id: str, from_status: str, to_status: str) -> None:
        super().__init__(
            f"任务 {task_id} 不能从 {from_status} 流转到 {to_status}",
            recoverable=False,
        )
        self.task_id = task_id
        self.from_status = from_status
        self.to_status = to_status


class TaskStatusConflictError(FleetError):
    """乐观状态校验失败：任务状态在读写之间被其他写入者修改"""

    def __init__(self, task_id: str, expected_status: str) -> None:
        super().__init__(
            f"任务 {task_id} 状态已不是 {expected_status}，写入被放弃",
            recoverable=True,
        )
        self.task_id = task_id
        self.expected_status = expected_status
