"""派发通道 -- 基于文件投递的 worker 协议

worker 是异步轮询的自治进程，因此派发不做同步调用：
1. 把渲染好的指令文档写到 worker workspace 的 memory/tasks/<id>.md
2. worker 完成后写 <id>.result.md，失败时写 <id>.error.md
3. 控制面轮询时先查 result 再查 error，都不存在即仍在运行

写端至少一次（重复派发覆盖指令文件），读端幂等（轮询无副作用）。
"""

import posixpath

import structlog
from pydantic import BaseModel

from fleetctl.remote import (
    ExecutorFactory,
    RemoteCommandError,
    RemoteExecutor,
    quote_remote_path,
)

from ..config import get_remote_workspace
from ..models.agent import Worker
from ..models.task import Task
from .outcomes import PollOutcome, PollStatus

log = structlog.get_logger()

NOT_FOUND_SENTINEL = "__NOT_FOUND__"


class TaskPaths(BaseModel):
    """单个任务在 worker workspace 中的文件路径"""

    tasks_dir: str
    instructions: str
    result: str
    error: str

    @classmethod
    def for_task(cls, task_id: str, workspace: str) -> "TaskPaths":
        tasks_dir = posixpath.join(workspace, "memory", "tasks")
        return cls(
            tasks_dir=tasks_dir,
            instructions=posixpath.join(tasks_dir, f"{task_id}.md"),
            result=posixpath.join(tasks_dir, f"{task_id}.result.md"),
            error=posixpath.join(tasks_dir, f"{task_id}.error.md"),
        )


def build_task_document(task: Task) -> str:
    """渲染交给 worker 的指令文档（markdown）"""
    lines = [
        f"# Task: {task.title}",
        "",
        f"**ID:** {task.task_id}",
        f"**Status:** {task.status.value}",
        f"**Requested by:** {task.requested_by}",
        f"**Created:** {task.created_at.isoformat()}",
    ]

    if task.timeout_seconds:
        lines.append(f"**Timeout:** {task.timeout_seconds}s")
    if task.required_capabilities:
        lines.append(f"**Required capabilities:** {', '.join(task.required_capabilities)}")

    lines += ["", "## Instructions", "", task.description]

    lines += [
        "",
        "## How to Respond",
        "",
        "When you complete this task, write your result to:",
        f"`memory/tasks/{task.task_id}.result.md`",
        "",
        "If you cannot complete it, write the error to:",
        f"`memory/tasks/{task.task_id}.error.md`",
        "",
        "Write exactly one of the two files, once.",
        "The orchestrator will pick up your response on its next check.",
    ]
    return "\n".join(lines) + "\n"


class DispatchChannel:
    """通过 RemoteExecutor 投递指令文件并读取响应文件

    每次 deliver / fetch 独立建立连接，结束时总是断开。
    传输层异常（RemoteError）原样抛给调用方。
    """

    def __init__(
        self,
        executor_factory: ExecutorFactory,
        default_workspace: str | None = None,
    ) -> None:
        self._executor_factory = executor_factory
        self._default_workspace = default_workspace or get_remote_workspace()

    def paths_for(self, task: Task, worker: Worker) -> TaskPaths:
        workspace = worker.workspace_dir or self._default_workspace
        return TaskPaths.for_task(task.task_id, workspace)

    async def deliver(self, task: Task, worker: Worker) -> TaskPaths:
        """把任务指令写到 worker workspace

        Raises:
            RemoteError: 连接或写入失败
        """
        paths = self.paths_for(task, worker)
        executor = self._executor_factory(worker)
        try:
            await executor.connect(worker)
            mkdir = f"mkdir -p {quote_remote_path(paths.tasks_dir)}"
            result = await executor.exec(mkdir)
            if not result.ok:
                raise RemoteCommandError(mkdir, result.exit_code, result.stderr)
            await executor.put_content(build_task_document(task), paths.instructions)
        finally:
            await executor.disconnect()

        log.info(
            "task_delivered",
            task_id=task.task_id,
            worker=worker.name,
            path=paths.instructions,
        )
        return paths

    async def fetch(self, task: Task, worker: Worker) -> PollOutcome:
        """读取 worker 的响应文件，result 优先于 error

        Raises:
            RemoteError: 连接或读取失败
        """
        paths = self.paths_for(task, worker)
        executor = self._executor_factory(worker)
        try:
            await executor.connect(worker)

            result = await self._read_optional(executor, paths.result)
            if result is not None:
                return PollOutcome(status=PollStatus.COMPLETED, result=result)

            error = await self._read_optional(executor, paths.error)
            if error is not None:
                return PollOutcome(status=PollStatus.FAILED, error=error)

            return PollOutcome(status=PollStatus.RUNNING)
        finally:
            await executor.disconnect()

    @staticmethod
    async def _read_optional(executor: RemoteExecutor, path: str) -> str | None:
        """读取远端文件；不存在时返回 None"""
        quoted = quote_remote_path(path)
        output = await executor.exec(f'cat {quoted} 2>/dev/null || echo "{NOT_FOUND_SENTINEL}"')
        content = output.stdout.strip()
        if content == NOT_FOUND_SENTINEL:
            return None
        return content
