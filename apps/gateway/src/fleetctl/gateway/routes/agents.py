"""roster 只读路由

GET /api/agents: 列出所有 worker
GET /api/agents/{agent}: 按名称或 ID 查询
session_key 不经 HTTP 暴露。
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from starlette.responses import JSONResponse

from fleetctl.core.models import Worker

from ..deps import get_store_group

router = APIRouter()

_HIDDEN_FIELDS = {"session_key"}


class AgentListResponse(BaseModel):
    agents: list[dict]


def _public(worker: Worker) -> dict:
    return worker.model_dump(mode="json", exclude=_HIDDEN_FIELDS)


@router.get("/api/agents", response_model=AgentListResponse)
async def list_agents(store_group=Depends(get_store_group)):
    roster = await store_group.agent_store.list_agents()
    return AgentListResponse(agents=[_public(w) for w in roster])


@router.get("/api/agents/{agent}")
async def get_agent(agent: str, store_group=Depends(get_store_group)):
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
    return _public(worker)
