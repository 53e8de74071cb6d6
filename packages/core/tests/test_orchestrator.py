"""TaskOrchestrator 单元测试

测试内容：
1. 创建 / 自动路由 / 手动分配
2. 派发：状态校验、policy 闸门、传输失败可重试
3. 轮询：响应文件驱动终态，远端不可达视为 running
4. 人工终态与超时清扫
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from fleetctl.core.exceptions import TaskTransitionError
from fleetctl.core.models import (
    AuditAction,
    PolicyEffect,
    PolicyFile,
    PolicyRule,
    TaskStatus,
    WorkerStatus,
)
from fleetctl.core.policy import PolicyEngine
from fleetctl.core.tasks import (
    DispatchChannel,
    DispatchStatus,
    PollStatus,
    TaskOrchestrator,
)


def _tasks_dir(remote_root: Path) -> Path:
    return remote_root / "ws" / "memory" / "tasks"


@pytest.fixture
def worker(make_worker):
    return make_worker("alpha", capabilities=["python"], workspace_dir="~/ws")


async def _assigned_task(orchestrator: TaskOrchestrator, worker, **kwargs):
    task, _ = await orchestrator.create_and_route(
        "Run the tests",
        "Run the unit test suite and report failures.",
        "cli",
        [worker],
        assign_to=worker,
        **kwargs,
    )
    return task


class TestCreateAndAssign:
    async def test_create_pending_task(self, orchestrator, stores, clock):
        task = await orchestrator.create(
            "Index docs",
            "Rebuild the search index.",
            "cli",
            required_capabilities=["search", "search", "docs"],
            timeout_seconds=120,
        )
        assert task.status == TaskStatus.PENDING
        assert task.required_capabilities == ["search", "docs"]
        assert task.created_at == clock.now
        assert task.assigned_to is None
        assert await stores.task_store.get_task(task.task_id) == task

        entries = await stores.audit_store.query(action=AuditAction.TASK_CREATE.value)
        assert entries[0].detail["task_id"] == task.task_id

    @pytest.mark.parametrize("kwargs", [{"title": ""}, {"timeout_seconds": 0}])
    async def test_create_rejects_invalid_input(self, orchestrator, kwargs):
        fields = {"title": "ok", "description": "", "requested_by": "cli", **kwargs}
        with pytest.raises(ValidationError):
            await orchestrator.create(**fields)

    async def test_auto_route_picks_best_worker(self, orchestrator, make_worker, clock):
        weak = make_worker("weak")
        strong = make_worker("strong", capabilities=["python"])
        task, route = await orchestrator.create_and_route(
            "Fix python packaging", "", "cli", [weak, strong], required_capabilities=["python"]
        )
        assert route is not None
        assert route.worker.name == "strong"
        assert task.status == TaskStatus.ASSIGNED
        assert task.assigned_to == strong.agent_id
        assert task.assigned_to_name == "strong"
        assert task.routing_reason == route.reason
        assert task.assigned_at == clock.now

    async def test_no_match_leaves_task_pending(self, orchestrator, make_worker):
        offline = make_worker("off", status=WorkerStatus.OFFLINE, capabilities=["python"])
        task, route = await orchestrator.create_and_route(
            "python job", "", "cli", [offline], required_capabilities=["python"]
        )
        assert route is None
        assert task.status == TaskStatus.PENDING
        assert task.assigned_to is None

    async def test_manual_assignment(self, orchestrator, worker):
        task = await _assigned_task(orchestrator, worker)
        assert task.status == TaskStatus.ASSIGNED
        assert task.routing_reason == "manually assigned"

    async def test_reassign_and_assign_rules(self, orchestrator, worker, make_worker):
        task = await _assigned_task(orchestrator, worker)
        other = make_worker("beta")
        reassigned = await orchestrator.assign(task.task_id, other.agent_id, other.name, "rebalance")
        assert reassigned.assigned_to == other.agent_id
        assert reassigned.status == TaskStatus.ASSIGNED

        assert await orchestrator.assign("missing", other.agent_id, other.name, "x") is None

        await orchestrator.dispatch(task.task_id, other)
        with pytest.raises(TaskTransitionError):
            await orchestrator.assign(task.task_id, worker.agent_id, worker.name, "back")


class TestDispatch:
    async def test_dispatch_writes_instructions_and_runs(self, orchestrator, worker, remote_root, stores):
        task = await _assigned_task(orchestrator, worker)
        outcome = await orchestrator.dispatch(task.task_id, worker)

        assert outcome.dispatched
        assert outcome.task.status == TaskStatus.RUNNING
        instructions = _tasks_dir(remote_root) / f"{task.task_id}.md"
        assert instructions.exists()
        assert "# Task: Run the tests" in instructions.read_text(encoding="utf-8")

        entries = await stores.audit_store.query(action=AuditAction.TASK_DISPATCH.value)
        assert entries[0].success is True
        assert entries[0].detail["redispatch"] is False

    async def test_redispatch_running_task(self, orchestrator, worker, stores):
        task = await _assigned_task(orchestrator, worker)
        await orchestrator.dispatch(task.task_id, worker)
        outcome = await orchestrator.dispatch(task.task_id, worker)

        assert outcome.dispatched
        assert outcome.task.status == TaskStatus.RUNNING
        entries = await stores.audit_store.query(action=AuditAction.TASK_DISPATCH.value)
        assert entries[0].detail["redispatch"] is True

    async def test_dispatch_not_found(self, orchestrator, worker):
        outcome = await orchestrator.dispatch("missing", worker)
        assert outcome.status == DispatchStatus.NOT_FOUND
        assert outcome.task is None

    async def test_dispatch_pending_task_is_invalid(self, orchestrator, worker):
        task = await orchestrator.create("Unassigned", "", "cli")
        outcome = await orchestrator.dispatch(task.task_id, worker)
        assert outcome.status == DispatchStatus.INVALID_STATE
        assert outcome.task.status == TaskStatus.PENDING

    async def test_dispatch_to_other_worker_is_invalid(self, orchestrator, worker, make_worker):
        task = await _assigned_task(orchestrator, worker)
        outcome = await orchestrator.dispatch(task.task_id, make_worker("intruder"))
        assert outcome.status == DispatchStatus.INVALID_STATE
        assert "alpha" in outcome.reason

    async def test_policy_denial_has_no_side_effects(self, stores, local_factory, worker, remote_root, clock):
        policy = PolicyEngine(
            PolicyFile(rules=[PolicyRule(id="no-dispatch", action="task.dispatch", effect=PolicyEffect.DENY)])
        )
        orchestrator = TaskOrchestrator(stores, DispatchChannel(local_factory), policy=policy, clock=clock)
        task = await _assigned_task(orchestrator, worker)

        outcome = await orchestrator.dispatch(task.task_id, worker)
        assert outcome.status == DispatchStatus.DENIED
        assert (await orchestrator.get_task(task.task_id)).status == TaskStatus.ASSIGNED
        assert not (_tasks_dir(remote_root) / f"{task.task_id}.md").exists()

    async def test_confirmation_required(self, stores, local_factory, worker, clock):
        policy = PolicyEngine(
            PolicyFile(
                rules=[
                    PolicyRule(
                        id="confirm-dispatch",
                        action="task.*",
                        effect=PolicyEffect.ALLOW,
                        require_confirmation=True,
                    )
                ]
            )
        )
        orchestrator = TaskOrchestrator(stores, DispatchChannel(local_factory), policy=policy, clock=clock)
        task = await _assigned_task(orchestrator, worker)

        outcome = await orchestrator.dispatch(task.task_id, worker)
        assert outcome.status == DispatchStatus.CONFIRMATION_REQUIRED
        assert outcome.task.status == TaskStatus.ASSIGNED

        outcome = await orchestrator.dispatch(task.task_id, worker, confirmed=True)
        assert outcome.dispatched

    async def test_transport_failure_is_retryable(self, stores, unreachable_factory, audit, worker, clock):
        orchestrator = TaskOrchestrator(stores, DispatchChannel(unreachable_factory), audit=audit, clock=clock)
        task = await _assigned_task(orchestrator, worker)

        outcome = await orchestrator.dispatch(task.task_id, worker)
        assert outcome.status == DispatchStatus.TRANSPORT_FAILED
        assert outcome.retryable
        assert (await orchestrator.get_task(task.task_id)).status == TaskStatus.ASSIGNED

        entries = await stores.audit_store.query(action=AuditAction.TASK_DISPATCH.value)
        assert entries[0].success is False
        assert "connection refused" in entries[0].error


class TestPoll:
    async def test_poll_missing_returns_none(self, orchestrator, worker):
        assert await orchestrator.poll("missing", worker) is None

    async def test_poll_pending_without_remote_io(self, stores, unreachable_factory, worker, clock):
        orchestrator = TaskOrchestrator(stores, DispatchChannel(unreachable_factory), clock=clock)
        task = await orchestrator.create("Queued", "", "cli")
        outcome = await orchestrator.poll(task.task_id, worker)
        assert outcome.status == PollStatus.PENDING
        assert outcome.transport_error is None

    async def test_poll_running_then_completed(self, orchestrator, worker, remote_root, stores, clock):
        task = await _assigned_task(orchestrator, worker)
        await orchestrator.dispatch(task.task_id, worker)

        outcome = await orchestrator.poll(task.task_id, worker)
        assert outcome.status == PollStatus.RUNNING
        assert not outcome.done

        clock.advance(30)
        (_tasks_dir(remote_root) / f"{task.task_id}.result.md").write_text("3 failures\n", encoding="utf-8")
        outcome = await orchestrator.poll(task.task_id, worker)
        assert outcome.status == PollStatus.COMPLETED
        assert outcome.done
        assert outcome.result == "3 failures"
        assert outcome.task.status == TaskStatus.COMPLETED
        assert outcome.task.result == "3 failures"
        assert outcome.task.completed_at == clock.now

        entries = await stores.audit_store.query(action=AuditAction.TASK_COMPLETE.value)
        assert entries[0].detail["source"] == "poll"

    async def test_poll_error_file_fails_task(self, orchestrator, worker, remote_root):
        task = await _assigned_task(orchestrator, worker)
        await orchestrator.dispatch(task.task_id, worker)
        (_tasks_dir(remote_root) / f"{task.task_id}.error.md").write_text("no access", encoding="utf-8")

        outcome = await orchestrator.poll(task.task_id, worker)
        assert outcome.status == PollStatus.FAILED
        assert outcome.task.status == TaskStatus.FAILED
        assert outcome.task.error == "no access"

    async def test_poll_terminal_task_skips_remote(self, orchestrator, stores, unreachable_factory, worker, clock):
        task = await _assigned_task(orchestrator, worker)
        await orchestrator.complete(task.task_id, "done by hand")

        offline = TaskOrchestrator(stores, DispatchChannel(unreachable_factory), clock=clock)
        outcome = await offline.poll(task.task_id, worker)
        assert outcome.status == PollStatus.COMPLETED
        assert outcome.result == "done by hand"

    async def test_poll_unreachable_reports_running(self, orchestrator, stores, unreachable_factory, worker, clock):
        task = await _assigned_task(orchestrator, worker)
        await orchestrator.dispatch(task.task_id, worker)

        offline = TaskOrchestrator(stores, DispatchChannel(unreachable_factory), clock=clock)
        outcome = await offline.poll(task.task_id, worker)
        assert outcome.status == PollStatus.RUNNING
        assert "connection refused" in outcome.transport_error
        assert (await offline.get_task(task.task_id)).status == TaskStatus.RUNNING

    async def test_poll_until_done(self, orchestrator, worker, remote_root):
        task = await _assigned_task(orchestrator, worker)
        await orchestrator.dispatch(task.task_id, worker)
        sleeps: list[float] = []
        result_file = _tasks_dir(remote_root) / f"{task.task_id}.result.md"

        async def fake_sleep(seconds: float) -> None:
            sleeps.append(seconds)
            if len(sleeps) == 2:
                result_file.write_text("finished", encoding="utf-8")

        outcome = await orchestrator.poll_until_done(
            task.task_id, worker, wait_s=60, interval_s=5, sleep=fake_sleep
        )
        assert outcome.status == PollStatus.COMPLETED
        assert sleeps == [5, 5]

    async def test_poll_until_done_budget_exhausted(self, orchestrator, worker):
        task = await _assigned_task(orchestrator, worker)
        await orchestrator.dispatch(task.task_id, worker)
        sleeps: list[float] = []

        async def fake_sleep(seconds: float) -> None:
            sleeps.append(seconds)

        outcome = await orchestrator.poll_until_done(
            task.task_id, worker, wait_s=12, interval_s=5, sleep=fake_sleep
        )
        assert outcome.status == PollStatus.RUNNING
        assert sleeps == [5, 5, 2]
        assert (await orchestrator.get_task(task.task_id)).status == TaskStatus.RUNNING

    async def test_poll_until_done_rejects_bad_interval(self, orchestrator, worker):
        with pytest.raises(ValueError):
            await orchestrator.poll_until_done("any", worker, wait_s=1, interval_s=0)


class TestManualTerminal:
    async def test_complete_fail_cancel(self, orchestrator, worker, stores):
        done = await _assigned_task(orchestrator, worker)
        failed = await _assigned_task(orchestrator, worker)
        pending = await orchestrator.create("Never routed", "", "cli")

        completed = await orchestrator.complete(done.task_id, "ok")
        assert completed.status == TaskStatus.COMPLETED
        assert completed.result == "ok"
        assert completed.completed_at is not None

        errored = await orchestrator.fail(failed.task_id, "bad input")
        assert errored.status == TaskStatus.FAILED
        assert errored.error == "bad input"

        cancelled = await orchestrator.cancel(pending.task_id)
        assert cancelled.status == TaskStatus.CANCELLED

        entries = await stores.audit_store.query(action=AuditAction.TASK_CANCEL.value)
        assert entries[0].detail == {"task_id": pending.task_id, "source": "manual"}

    async def test_terminal_tasks_cannot_change(self, orchestrator, worker):
        task = await _assigned_task(orchestrator, worker)
        await orchestrator.cancel(task.task_id)
        with pytest.raises(TaskTransitionError):
            await orchestrator.complete(task.task_id, "late")
        with pytest.raises(TaskTransitionError):
            await orchestrator.cancel(task.task_id)

    async def test_missing_task_returns_none(self, orchestrator):
        assert await orchestrator.complete("missing", "x") is None
        assert await orchestrator.fail("missing", "x") is None
        assert await orchestrator.cancel("missing") is None


class TestQueriesAndSweep:
    async def test_list_tasks_filters(self, orchestrator, worker, clock):
        assigned = await _assigned_task(orchestrator, worker)
        clock.advance(1)
        pending = await orchestrator.create("Later", "", "cli")

        assert [t.task_id for t in await orchestrator.list_tasks()] == [assigned.task_id, pending.task_id]
        assert [t.task_id for t in await orchestrator.list_tasks(status="pending")] == [pending.task_id]
        by_worker = await orchestrator.list_tasks(assigned_to=worker.agent_id)
        assert [t.task_id for t in by_worker] == [assigned.task_id]

    async def test_sweep_timeouts(self, orchestrator, worker, clock):
        task = await _assigned_task(orchestrator, worker, timeout_seconds=60)
        await orchestrator.dispatch(task.task_id, worker)

        clock.advance(30)
        assert await orchestrator.sweep_timeouts() == 0
        clock.advance(31)
        assert await orchestrator.sweep_timeouts() == 1

        expired = await orchestrator.get_task(task.task_id)
        assert expired.status == TaskStatus.FAILED
        assert expired.error == "Task timed out after 60s (elapsed: 61s)"
