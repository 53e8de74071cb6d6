"""任务路由

GET  /api/tasks: 任务列表，支持 status / agent 筛选
GET  /api/tasks/{task_id}: 任务详情
POST /api/tasks/route: 路由预览（dry run，不落库）
POST /api/tasks/{task_id}/cancel: 取消非终态任务
POST /api/tasks/sweep: 执行一次超时清扫
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse

from fleetctl.core.exceptions import TaskStatusConflictError, TaskTransitionError
from fleetctl.core.models import Task, TaskStatus
from fleetctl.core.tasks import TaskOrchestrator, preview_task

from ..deps import get_orchestrator, get_store_group

router = APIRouter()


class TaskListResponse(BaseModel):
    tasks: list[Task]


class RouteRequest(BaseModel):
    """路由预览请求"""

    title: str = Field(min_length=1)
    description: str = ""
    capabilities: list[str] = Field(default_factory=list)


class RouteCandidate(BaseModel):
    agent_id: str
    name: str
    score: int
    reason: str


class RouteResponse(BaseModel):
    candidates: list[RouteCandidate]


class SweepResponse(BaseModel):
    expired: int


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
    )


def _task_not_found(task_id: str) -> JSONResponse:
    return _error(404, "TASK_NOT_FOUND", f"Task {task_id} not found")


@router.get("/api/tasks", response_model=TaskListResponse)
async def list_tasks(
    status: str | None = Query(default=None, description="按状态筛选"),
    agent: str | None = Query(default=None, description="按 worker 名称或 ID 筛选"),
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
    store_group=Depends(get_store_group),
):
    """查询任务列表，按创建顺序排列"""
    if status is not None and status not in {s.value for s in TaskStatus}:
        return _error(400, "INVALID_STATUS", f"Unknown task status: {status}")

    assigned_to = None
    if agent:
        worker = await store_group.agent_store.get_agent(agent)
        assigned_to = worker.agent_id if worker else agent

    tasks = await orchestrator.list_tasks(status=status, assigned_to=assigned_to)
    return TaskListResponse(tasks=tasks)


@router.get("/api/tasks/{task_id}", response_model=Task)
async def get_task_detail(
    task_id: str,
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
):
    task = await orchestrator.get_task(task_id)
    if task is None:
        return _task_not_found(task_id)
    return task


@router.post("/api/tasks/route", response_model=RouteResponse)
async def route_preview(
    body: RouteRequest,
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
    store_group=Depends(get_store_group),
):
    """对当前 roster 打分，不创建任务"""
    task = preview_task(body.title, body.description, body.capabilities)
    roster = await store_group.agent_store.list_agents()
    results = orchestrator.route(task, roster)
    return RouteResponse(
        candidates=[
            RouteCandidate(
                agent_id=r.worker.agent_id,
                name=r.worker.name,
                score=r.score,
                reason=r.reason,
            )
            for r in results
        ]
    )


@router.post("/api/tasks/{task_id}/cancel", response_model=Task)
async def cancel_task(
    task_id: str,
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
):
    """取消任务；终态任务或并发状态冲突返回 409"""
    try:
        task = await orchestrator.cancel(task_id)
    except TaskTransitionError as e:
        return _error(409, "TASK_ALREADY_TERMINAL", str(e))
    except TaskStatusConflictError as e:
        return _error(409, "TASK_STATUS_CONFLICT", str(e))
    if task is None:
        return _task_not_found(task_id)
    return task


@router.post("/api/tasks/sweep", response_model=SweepResponse)
async def sweep_timeouts(
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
):
    return SweepResponse(expired=await orchestrator.sweep_timeouts())
