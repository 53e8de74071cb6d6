"""分批并发执行器

按固定大小分批，批内并发执行 I/O 操作，批间可暂停等待远端稳定。
单个失败只被收集，不会中断后续批次。
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import structlog

log = structlog.get_logger()

T = TypeVar("T")


@dataclass
class BatchReport(Generic[T]):
    """分批执行结果"""

    succeeded: list[tuple[T, Any]] = field(default_factory=list)
    failed: list[tuple[T, BaseException]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


async def run_in_batches(
    items: Sequence[T],
    fn: Callable[[T], Awaitable[Any]],
    concurrency: int = 1,
    pause_s: float = 0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> BatchReport[T]:
    """分批执行 fn(item)

    Args:
        items: 待处理对象
        fn: 对单个对象执行的异步操作
        concurrency: 每批大小（即最大并发数）
        pause_s: 批间暂停秒数，最后一批之后不暂停
        sleep: 暂停函数（测试时可替换）

    Returns:
        BatchReport，包含成功与失败的对象
    """
    if concurrency < 1:
        raise ValueError("concurrency 必须 >= 1")

    report: BatchReport[T] = BatchReport()
    for start in range(0, len(items), concurrency):
        batch = items[start : start + concurrency]
        results = await asyncio.gather(
            *(fn(item) for item in batch),
            return_exceptions=True,
        )
        for item, outcome in zip(batch, results, strict=True):
            if isinstance(outcome, BaseException):
                log.warning(
                    "batch_item_failed",
                    error_type=type(outcome).__name__,
                    error=str(outcome),
                )
                report.failed.append((item, outcome))
            else:
                report.succeeded.append((item, outcome))

        if start + concurrency < len(items) and pause_s > 0:
            await sleep(pause_s)

    return report
