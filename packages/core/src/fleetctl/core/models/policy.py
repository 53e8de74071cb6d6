"""Policy 数据模型

policy 文件声明一组有序规则（首个命中生效），
每条规则匹配一个动作模式并给出 allow/deny 及可选条件。
"""

from typing import Literal

from pydantic import BaseModel, Field

from .enums import PolicyEffect


class PolicyCondition(BaseModel):
    """规则条件 -- 针对 worker 字段求值"""

    field: str = Field(description="worker 字段名，如 role / status / tags")
    op: Literal["eq", "neq", "in", "notIn", "contains"] = Field(description="比较运算符")
    value: str | list[str] = Field(description="比较值")


class PolicyRule(BaseModel):
    """单条 policy 规则"""

    id: str = Field(min_length=1, description="规则 ID")
    description: str | None = Field(default=None, description="规则说明")
    action: str = Field(description="动作模式：*、精确名或 ns.* 前缀")
    effect: PolicyEffect = Field(description="命中时的效果")
    conditions: list[PolicyCondition] = Field(
        default_factory=list,
        description="全部满足（AND）时规则才生效",
    )
    require_confirmation: bool = Field(default=False, description="允许但需人工确认")


class PolicyFile(BaseModel):
    """policy.json 文件结构"""

    version: Literal[1] = 1
    default_effect: PolicyEffect = Field(default=PolicyEffect.ALLOW)
    rules: list[PolicyRule] = Field(default_factory=list)


class PolicyDecision(BaseModel):
    """policy 求值结果"""

    allowed: bool
    require_confirmation: bool = False
    reason: str = ""
    matched_rule: PolicyRule | None = None
