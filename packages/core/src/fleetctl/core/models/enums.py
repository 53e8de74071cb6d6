"""枚举定义

包含 TaskStatus 状态机、Worker 角色/可达性、审计动作、policy 效果枚举，
以及 VALID_TRANSITIONS 合法流转映射和 TERMINAL_STATES 终态集合。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """Task 状态机"""

    # 活跃状态
    PENDING = "pending"
    ASSIGNED = "assigned"
    RUNNING = "running"

    # 终态
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


# 合法状态流转
VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {
        TaskStatus.ASSIGNED,
        TaskStatus.COMPLETED,
        TaskStatus.FAILED,
        TaskStatus.CANCELLED,
    },
    TaskStatus.ASSIGNED: {
        TaskStatus.ASSIGNED,  # 重新分配覆盖原 worker
        TaskStatus.RUNNING,
        TaskStatus.COMPLETED,
        TaskStatus.FAILED,
        TaskStatus.CANCELLED,
    },
    TaskStatus.RUNNING: {
        TaskStatus.RUNNING,  # 重新派发（指令文件覆盖写）
        TaskStatus.COMPLETED,
        TaskStatus.FAILED,
        TaskStatus.CANCELLED,
    },
    # 终态不可再流转
    TaskStatus.COMPLETED: set(),
    TaskStatus.FAILED: set(),
    TaskStatus.CANCELLED: set(),
}

TERMINAL_STATES: set[TaskStatus] = {
    TaskStatus.COMPLETED,
    TaskStatus.FAILED,
    TaskStatus.CANCELLED,
}

# 可以被派发 / 轮询的状态
DISPATCHABLE_STATES: set[TaskStatus] = {TaskStatus.ASSIGNED, TaskStatus.RUNNING}


class WorkerRole(StrEnum):
    """Worker 角色 -- orchestrator 永远不是路由目标"""

    ORCHESTRATOR = "orchestrator"
    WORKER = "worker"
    MONITOR = "monitor"
    GATEWAY = "gateway"


class WorkerStatus(StrEnum):
    """Worker 可达性"""

    ONLINE = "online"
    OFFLINE = "offline"
    DEGRADED = "degraded"
    UNKNOWN = "unknown"
    PROVISIONING = "provisioning"


class AuditAction(StrEnum):
    """审计动作 -- 点分命名空间，policy 规则可按前缀匹配"""

    AGENT_ADD = "agent.add"
    AGENT_UPDATE = "agent.update"
    AGENT_REMOVE = "agent.remove"
    POLICY_CHECK = "policy.check"
    SECRETS_SET = "secrets.set"
    SECRETS_GET = "secrets.get"
    SECRETS_DELETE = "secrets.delete"
    SECRETS_PUSH = "secrets.push"
    TASK_CREATE = "task.create"
    TASK_ASSIGN = "task.assign"
    TASK_DISPATCH = "task.dispatch"
    TASK_COMPLETE = "task.complete"
    TASK_FAIL = "task.fail"
    TASK_CANCEL = "task.cancel"


class PolicyEffect(StrEnum):
    """Policy 规则效果"""

    ALLOW = "allow"
    DENY = "deny"


def validate_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """验证状态流转是否合法

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_status, set())
    return to_status in allowed
