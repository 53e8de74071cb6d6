"""子进程与远端路径的公共工具"""

import asyncio
import shlex
from collections.abc import Mapping, Sequence

from .models import ExecResult


def quote_remote_path(path: str) -> str:
    """为 shell 命令引用远端路径，保留开头 ~ 的家目录展开"""
    if path == "~":
        return '"$HOME"'
    if path.startswith("~/"):
        return '"$HOME"/' + shlex.quote(path[2:])
    return shlex.quote(path)


async def run_process(
    argv: Sequence[str] | None = None,
    *,
    shell_command: str | None = None,
    stdin_text: str | None = None,
    timeout_s: float | None = None,
    env: Mapping[str, str] | None = None,
) -> ExecResult:
    """运行子进程并收集输出

    argv 与 shell_command 二选一。

    Raises:
        TimeoutError: 超过 timeout_s 仍未结束（子进程已被终止）
    """
    stdin = asyncio.subprocess.PIPE if stdin_text is not None else asyncio.subprocess.DEVNULL
    if shell_command is not None:
        process = await asyncio.create_subprocess_shell(
            shell_command,
            stdin=stdin,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=dict(env) if env is not None else None,
        )
    elif argv:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=stdin,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=dict(env) if env is not None else None,
        )
    else:
        raise ValueError("必须提供 argv 或 shell_command")

    payload = stdin_text.encode("utf-8") if stdin_text is not None else None
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(payload), timeout=timeout_s)
    except TimeoutError:
        process.kill()
        await process.wait()
        raise

    return ExecResult(
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
        exit_code=process.returncode,
    )
