"""超时清扫单元测试

测试内容：
1. 超时判定基于 assigned_at（缺失时退回 created_at）
2. 超时的 assigned / running 任务置为 failed，带固定格式错误信息
3. 未设置超时、未超时、pending、终态任务不受影响
4. 重复清扫幂等，并写入审计
"""

from datetime import UTC, datetime, timedelta

from fleetctl.core.models import AuditAction, Task, TaskStatus
from fleetctl.core.tasks import TimeoutEnforcer
from fleetctl.core.tasks.timeout import elapsed_seconds, is_overdue

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def _task(task_id: str, status: TaskStatus, timeout: int | None, **overrides) -> Task:
    fields = {
        "task_id": task_id,
        "title": task_id,
        "requested_by": "cli",
        "status": status,
        "timeout_seconds": timeout,
        "created_at": T0,
    }
    if status != TaskStatus.PENDING:
        fields.update(assigned_to="W1", assigned_to_name="alpha", assigned_at=T0)
    fields.update(overrides)
    return Task(**fields)


class TestOverdue:
    def test_elapsed_prefers_assigned_at(self):
        task = _task("T", TaskStatus.RUNNING, 10, assigned_at=T0 + timedelta(seconds=30))
        assert elapsed_seconds(task, T0 + timedelta(seconds=40)) == 10

    def test_strictly_greater_than_timeout(self):
        task = _task("T", TaskStatus.RUNNING, 10)
        assert not is_overdue(task, T0 + timedelta(seconds=10))
        assert is_overdue(task, T0 + timedelta(seconds=11))

    def test_pending_and_untimed_never_overdue(self):
        late = T0 + timedelta(days=1)
        assert not is_overdue(_task("P", TaskStatus.PENDING, 10), late)
        assert not is_overdue(_task("N", TaskStatus.RUNNING, None), late)
        assert not is_overdue(_task("C", TaskStatus.COMPLETED, 10), late)


class TestTimeoutEnforcer:
    async def test_sweep_fails_overdue_tasks(self, stores, audit):
        for task in [
            _task("RUN", TaskStatus.RUNNING, 60),
            _task("ASG", TaskStatus.ASSIGNED, 60),
            _task("FRESH", TaskStatus.RUNNING, 3600),
            _task("NOLIMIT", TaskStatus.RUNNING, None),
            _task("PEND", TaskStatus.PENDING, 60),
            _task("DONE", TaskStatus.COMPLETED, 60),
        ]:
            await stores.task_store.create_task(task)
        await stores.conn.commit()

        now = T0 + timedelta(seconds=125)
        enforcer = TimeoutEnforcer(stores, audit=audit, clock=lambda: now)
        assert await enforcer.sweep() == 2

        run = await stores.task_store.get_task("RUN")
        assert run.status == TaskStatus.FAILED
        assert run.error == "Task timed out after 60s (elapsed: 125s)"
        assert run.completed_at == now
        assert (await stores.task_store.get_task("ASG")).status == TaskStatus.FAILED

        for task_id, status in [
            ("FRESH", TaskStatus.RUNNING),
            ("NOLIMIT", TaskStatus.RUNNING),
            ("PEND", TaskStatus.PENDING),
            ("DONE", TaskStatus.COMPLETED),
        ]:
            assert (await stores.task_store.get_task(task_id)).status == status

        entries = await stores.audit_store.query(action=AuditAction.TASK_FAIL.value)
        assert len(entries) == 2
        assert all(e.detail["reason"] == "timeout" for e in entries)

    async def test_second_sweep_is_noop(self, stores):
        await stores.task_store.create_task(_task("RUN", TaskStatus.RUNNING, 1))
        await stores.conn.commit()

        enforcer = TimeoutEnforcer(stores, clock=lambda: T0 + timedelta(seconds=5))
        assert await enforcer.sweep() == 1
        assert await enforcer.sweep() == 0
