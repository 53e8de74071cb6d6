"""Policy 引擎 -- 敏感操作前的 allow / deny / confirm 闸门

规则按顺序求值，首个命中生效；无命中时使用 default_effect。
动作模式支持 "*"、精确匹配和 "ns.*" 前缀通配。
"""

import json
from pathlib import Path

import structlog

from .audit import AuditSink, record_audit
from .models.agent import Worker
from .models.enums import AuditAction, PolicyEffect
from .models.policy import PolicyCondition, PolicyDecision, PolicyFile, PolicyRule

log = structlog.get_logger()

DEFAULT_POLICY = PolicyFile(
    default_effect=PolicyEffect.ALLOW,
    rules=[
        PolicyRule(
            id="confirm-remove-orchestrator",
            description="Removing an orchestrator agent requires confirmation",
            action="agent.remove",
            effect=PolicyEffect.ALLOW,
            conditions=[PolicyCondition(field="role", op="eq", value="orchestrator")],
            require_confirmation=True,
        ),
        PolicyRule(
            id="deny-secrets-push-unknown",
            description="Block pushing secrets to agents with unknown status",
            action="secrets.push",
            effect=PolicyEffect.DENY,
            conditions=[PolicyCondition(field="status", op="eq", value="unknown")],
        ),
    ],
)


def match_action(pattern: str, action: str) -> bool:
    """动作模式匹配"""
    if pattern == "*" or pattern == action:
        return True
    if pattern.endswith(".*"):
        return action.startswith(pattern[:-1])
    return False


def _field_values(worker: Worker, field: str) -> list[str]:
    raw = getattr(worker, field, None)
    if isinstance(raw, list):
        return [str(v) for v in raw]
    return [str(raw) if raw is not None else ""]


def evaluate_condition(cond: PolicyCondition, worker: Worker) -> bool:
    """在 worker 上求值单个条件；标量运算符要求字段恰好一个值"""
    field_vals = _field_values(worker, cond.field)
    compare_vals = cond.value if isinstance(cond.value, list) else [cond.value]
    scalar = len(field_vals) == 1

    match cond.op:
        case "eq":
            return scalar and field_vals[0] == compare_vals[0]
        case "neq":
            return scalar and field_vals[0] != compare_vals[0]
        case "in":
            return scalar and field_vals[0] in compare_vals
        case "notIn":
            return scalar and field_vals[0] not in compare_vals
        case "contains":
            return any(v in field_vals for v in compare_vals)
    return False


def evaluate_rule(rule: PolicyRule, action: str, subject: Worker | None) -> bool:
    """规则命中判断：动作匹配且全部条件成立；有条件但无对象时不命中"""
    if not match_action(rule.action, action):
        return False
    if not rule.conditions:
        return True
    if subject is None:
        return False
    return all(evaluate_condition(cond, subject) for cond in rule.conditions)


class PolicyEngine:
    """基于 policy.json 的规则引擎"""

    def __init__(self, policy: PolicyFile | None = None, path: Path | None = None) -> None:
        self._policy = (policy or DEFAULT_POLICY).model_copy(deep=True)
        self._path = path

    @classmethod
    def load(cls, path: Path) -> "PolicyEngine":
        """从文件加载规则；文件不存在时使用默认规则"""
        if not path.exists():
            return cls(DEFAULT_POLICY, path)
        data = json.loads(path.read_text(encoding="utf-8"))
        return cls(PolicyFile.model_validate(data), path)

    def save(self) -> None:
        """写回 policy 文件"""
        if self._path is None:
            raise ValueError("PolicyEngine 未绑定文件路径")
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            self._policy.model_dump_json(indent=2) + "\n",
            encoding="utf-8",
        )

    def init(self) -> bool:
        """文件不存在时写入默认规则，返回是否新建"""
        if self._path is None or self._path.exists():
            return False
        self._policy = DEFAULT_POLICY.model_copy(deep=True)
        self.save()
        return True

    def evaluate(self, action: str, subject: Worker | None = None) -> PolicyDecision:
        """对动作求值，返回 PolicyDecision"""
        for rule in self._policy.rules:
            if evaluate_rule(rule, action, subject):
                return PolicyDecision(
                    allowed=rule.effect == PolicyEffect.ALLOW,
                    require_confirmation=rule.require_confirmation,
                    reason=rule.description or f"Matched rule: {rule.id}",
                    matched_rule=rule,
                )
        return PolicyDecision(
            allowed=self._policy.default_effect == PolicyEffect.ALLOW,
            require_confirmation=False,
            reason=f"Default policy: {self._policy.default_effect.value}",
            matched_rule=None,
        )

    def get_rules(self) -> list[PolicyRule]:
        return list(self._policy.rules)

    def add_rule(self, rule: PolicyRule) -> None:
        """添加规则；同 ID 规则被替换"""
        self._policy.rules = [r for r in self._policy.rules if r.id != rule.id]
        self._policy.rules.append(rule)

    def remove_rule(self, rule_id: str) -> bool:
        before = len(self._policy.rules)
        self._policy.rules = [r for r in self._policy.rules if r.id != rule_id]
        return len(self._policy.rules) < before

    def get_policy(self) -> PolicyFile:
        return self._policy.model_copy(deep=True)


async def enforce_policy(
    engine: PolicyEngine | None,
    action: str,
    subject: Worker | None = None,
    audit: AuditSink | None = None,
) -> PolicyDecision:
    """执行 policy 检查；拒绝时写审计记录

    未配置引擎时放行。requireConfirmation 由调用方决定如何处理。
    """
    if engine is None:
        return PolicyDecision(allowed=True, reason="No policy engine configured")

    decision = engine.evaluate(action, subject)
    if not decision.allowed:
        log.warning(
            "policy_denied",
            action=action,
            subject=subject.name if subject else None,
            rule=decision.matched_rule.id if decision.matched_rule else None,
        )
        await record_audit(
            audit,
            AuditAction.POLICY_CHECK,
            subject_id=subject.agent_id if subject else None,
            subject_name=subject.name if subject else None,
            detail={
                "action": action,
                "allowed": False,
                "rule": decision.matched_rule.id if decision.matched_rule else None,
            },
            success=False,
            error=decision.reason,
        )
    return decision
