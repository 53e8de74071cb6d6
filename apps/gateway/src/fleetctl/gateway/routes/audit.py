"""审计查询路由 -- GET /api/audit"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from fleetctl.core.models import AuditAction, AuditEntry

from ..deps import get_store_group

router = APIRouter()


class AuditListResponse(BaseModel):
    entries: list[AuditEntry]


@router.get("/api/audit", response_model=AuditListResponse)
async def list_audit(
    action: AuditAction | None = Query(default=None, description="按动作筛选"),
    agent: str | None = Query(default=None, description="按对象 worker 名称或 ID 筛选"),
    limit: int = Query(default=50, ge=1, le=1000),
    store_group=Depends(get_store_group),
):
    """最新的审计记录在前"""
    subject_id = None
    if agent:
        worker = await store_group.agent_store.get_agent(agent)
        subject_id = worker.agent_id if worker else agent

    entries = await store_group.audit_store.query(
        action=action.value if action else None,
        subject_id=subject_id,
        limit=limit,
    )
    return AuditListResponse(entries=entries)
