"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含 SQLite 连通性、policy 文件、磁盘空间。
"""

import shutil

import structlog
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

from fleetctl.core.config import get_policy_path

log = structlog.get_logger()

router = APIRouter()

# 低于该值视为磁盘不足
MIN_FREE_DISK_MB = 64


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查

    检查项：
    1. sqlite: 数据库连通性
    2. policy: policy 文件是否存在（缺失时使用默认规则，不影响就绪）
    3. disk_space_mb: 磁盘剩余空间
    """
    checks: dict[str, object] = {}
    all_ok = True

    # 1. SQLite 连通性检查
    try:
        store_group = request.app.state.store_group
        cursor = await store_group.conn.execute("SELECT 1")
        await cursor.fetchone()
        checks["sqlite"] = "ok"
    except Exception as e:
        log.warning("ready_check_failed", check="sqlite", error=str(e))
        checks["sqlite"] = f"error: {e}"
        all_ok = False

    # 2. policy 文件
    checks["policy"] = "ok" if get_policy_path().exists() else "default"

    # 3. 磁盘空间检查
    try:
        disk_space_mb = shutil.disk_usage("/").free // (1024 * 1024)
        checks["disk_space_mb"] = disk_space_mb
        if disk_space_mb < MIN_FREE_DISK_MB:
            all_ok = False
    except OSError:
        checks["disk_space_mb"] = 0
        all_ok = False

    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={
            "status": "ready" if all_ok else "not_ready",
            "checks": checks,
        },
    )
