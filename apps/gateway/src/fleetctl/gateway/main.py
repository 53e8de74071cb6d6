"""fleetctl Gateway -- FastAPI 应用入口

只读查看 roster / 任务 / 审计 / policy，外加任务取消、路由预览与超时清扫。
派发与 secret 操作只走 CLI。
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from fleetctl.core.audit import AuditLogger
from fleetctl.core.config import get_db_path, get_policy_path
from fleetctl.core.logging_config import setup_logging
from fleetctl.core.policy import PolicyEngine
from fleetctl.core.store import create_store_group
from fleetctl.core.tasks import DispatchChannel, TaskOrchestrator
from fleetctl.remote import default_executor_factory

from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import agents, audit, health, policy, tasks

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # Startup
    db_path = get_db_path()
    store_group = await create_store_group(db_path)
    audit_logger = AuditLogger(
        store_group.audit_store,
        store_group.conn,
        actor="gateway",
        lock=store_group.write_lock,
    )
    policy_engine = PolicyEngine.load(get_policy_path())

    app.state.store_group = store_group
    app.state.audit = audit_logger
    app.state.policy = policy_engine
    app.state.orchestrator = TaskOrchestrator(
        store_group,
        DispatchChannel(default_executor_factory),
        audit=audit_logger,
        policy=policy_engine,
    )
    log.info("gateway_started", db_path=db_path)

    yield

    # Shutdown
    await store_group.close()
    log.info("gateway_stopped")


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="fleetctl Gateway",
        version="0.1.0",
        lifespan=lifespan,
    )

    # 中间件（后添加的先执行）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    setup_logging()

    app.include_router(health.router, tags=["health"])
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(agents.router, tags=["agents"])
    app.include_router(audit.router, tags=["audit"])
    app.include_router(policy.router, tags=["policy"])

    return app


# 默认 app 实例（uvicorn fleetctl.gateway.main:app）
app = create_app()
