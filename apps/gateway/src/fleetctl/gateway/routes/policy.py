"""policy 只读路由

GET /api/policy: 当前生效的规则文件
GET /api/policy/check: 对某动作（可选 worker）求值，不执行动作
"""

from fastapi import APIRouter, Depends, Query
from starlette.responses import JSONResponse

from fleetctl.core.models import PolicyDecision, PolicyFile
from fleetctl.core.policy import PolicyEngine

from ..deps import get_policy_engine, get_store_group

router = APIRouter()


@router.get("/api/policy", response_model=PolicyFile)
async def get_policy(engine: PolicyEngine = Depends(get_policy_engine)):
    return engine.get_policy()


@router.get("/api/policy/check", response_model=PolicyDecision)
async def check_policy(
    action: str = Query(min_length=1),
    agent: str | None = Query(default=None),
    engine: PolicyEngine = Depends(get_policy_engine),
    store_group=Depends(get_store_group),
):
    worker = None
    if agent:
        worker = await store_group.agent_store.get_agent(agent)
        if worker is None:
            return JSONResponse(
                status_code=404,
                content={
                    "error": {
                        "code": "AGENT_NOT_FOUND",
                        "message": f"Agent {agent} not found",
                    }
                },
            )
    return engine.evaluate(action, worker)
