"""FastAPI 依赖注入 -- 从 app.state 取出 lifespan 中组装的服务"""

from fastapi import Request

from fleetctl.core.policy import PolicyEngine
from fleetctl.core.store import StoreGroup
from fleetctl.core.tasks import TaskOrchestrator


def get_store_group(request: Request) -> StoreGroup:
    return request.app.state.store_group


def get_orchestrator(request: Request) -> TaskOrchestrator:
    return request.app.state.orchestrator


def get_policy_engine(request: Request) -> PolicyEngine:
    return request.app.state.policy
