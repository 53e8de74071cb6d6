"""路由引擎 -- 按能力匹配度为任务给 worker 打分

纯函数，无 I/O、无随机性：同一 task + 同一 roster 总是得到同样的排序。

打分规则（累加）：
- 每个精确命中的必需能力 +10
- worker 能力标签出现在任务标题/描述中（大小写不敏感）每个 +5
- 任务文本中长度 > 4 的词出现在 worker 描述中每个 +1（弱信号）
- worker 在线 +3
- worker 有直连 session key +2
"""

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from ..models.agent import Worker
from ..models.enums import WorkerRole, WorkerStatus
from ..models.task import Task

EXACT_CAPABILITY_SCORE = 10
FUZZY_CAPABILITY_SCORE = 5
DESCRIPTION_WORD_SCORE = 1
ONLINE_SCORE = 3
SESSION_KEY_SCORE = 2

# 参与描述匹配的最短词长（不含）
MIN_DESCRIPTION_WORD_LENGTH = 4


class RouteResult(BaseModel):
    """单个候选 worker 的路由得分"""

    worker: Worker
    reason: str = Field(description="人类可读的得分原因")
    score: int = Field(ge=0)


def is_candidate(worker: Worker) -> bool:
    """离线 worker 与 orchestrator 不参与路由"""
    return worker.status != WorkerStatus.OFFLINE and worker.role != WorkerRole.ORCHESTRATOR


def score_worker(task: Task, worker: Worker) -> RouteResult:
    """计算单个 worker 对任务的得分"""
    score = 0
    reasons: list[str] = []
    capabilities = list(dict.fromkeys(worker.capabilities))

    for required in dict.fromkeys(task.required_capabilities):
        if required in capabilities:
            score += EXACT_CAPABILITY_SCORE
            reasons.append(f"has capability: {required}")

    task_text = f"{task.title} {task.description}".lower()
    for cap in capabilities:
        if cap.lower() in task_text:
            score += FUZZY_CAPABILITY_SCORE
            reasons.append(f"task mentions: {cap}")

    description = worker.description.lower()
    overlap = 0
    if description:
        for word in task_text.split():
            if len(word) > MIN_DESCRIPTION_WORD_LENGTH and word in description:
                overlap += 1
    if overlap:
        score += overlap * DESCRIPTION_WORD_SCORE
        reasons.append(f"description overlap: {overlap} word(s)")

    if worker.status == WorkerStatus.ONLINE:
        score += ONLINE_SCORE
        reasons.append("agent is online")

    if worker.session_key:
        score += SESSION_KEY_SCORE
        reasons.append("has session key (direct messaging)")

    return RouteResult(
        worker=worker,
        reason=", ".join(reasons) if reasons else "no specific match",
        score=score,
    )


def route_task(task: Task, workers: list[Worker]) -> list[RouteResult]:
    """对 roster 打分，返回得分 > 0 的候选（降序，同分保持输入顺序）"""
    scored = [score_worker(task, w) for w in workers if is_candidate(w)]
    # sorted 是稳定排序，reverse=True 时同分元素仍保持原顺序
    return sorted(
        (r for r in scored if r.score > 0),
        key=lambda r: r.score,
        reverse=True,
    )


def best_route(task: Task, workers: list[Worker]) -> RouteResult | None:
    """选出最佳 worker；无匹配时返回 None（任务保持 pending）"""
    candidates = route_task(task, workers)
    return candidates[0] if candidates else None


def preview_task(
    title: str,
    description: str = "",
    required_capabilities: list[str] | None = None,
) -> Task:
    """构造不落库的临时任务，仅用于路由预览"""
    return Task(
        task_id="preview",
        title=title,
        description=description,
        requested_by="preview",
        required_capabilities=list(dict.fromkeys(required_capabilities or [])),
        created_at=datetime.now(UTC),
    )
