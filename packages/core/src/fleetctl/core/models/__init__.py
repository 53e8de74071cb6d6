"""fleetctl Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .agent import Worker
from .audit import AuditEntry
from .enums import (
    DISPATCHABLE_STATES,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    AuditAction,
    PolicyEffect,
    TaskStatus,
    WorkerRole,
    WorkerStatus,
    validate_transition,
)
from .policy import PolicyCondition, PolicyDecision, PolicyFile, PolicyRule
from .task import Task

__all__ = [
    # 枚举
    "TaskStatus",
    "WorkerRole",
    "WorkerStatus",
    "AuditAction",
    "PolicyEffect",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "DISPATCHABLE_STATES",
    "validate_transition",
    # Task
    "Task",
    # Worker
    "Worker",
    # Audit
    "AuditEntry",
    # Policy
    "PolicyCondition",
    "PolicyRule",
    "PolicyFile",
    "PolicyDecision",
]
