"""TraceMiddleware -- /api/tasks/{task_id} 请求把 task_id 绑定到日志上下文"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# 非 task_id 的路径段
_RESERVED_SEGMENTS = {"route", "sweep"}


def extract_task_id(path: str) -> str | None:
    """从 /api/tasks/<task_id>[/...] 中提取 task_id"""
    parts = path.strip("/").split("/")
    if len(parts) >= 3 and parts[0] == "api" and parts[1] == "tasks":
        candidate = parts[2]
        if candidate and candidate not in _RESERVED_SEGMENTS:
            return candidate
    return None


class TraceMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        task_id = extract_task_id(request.url.path)
        if task_id:
            structlog.contextvars.bind_contextvars(task_id=task_id)
        return await call_next(request)
