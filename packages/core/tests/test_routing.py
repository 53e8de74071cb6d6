"""路由引擎单元测试

测试内容：
1. 精确能力 / 文本提及 / 描述重叠 / 在线 / session key 各项得分
2. 离线 worker 与 orchestrator 被排除
3. 同分保持 roster 顺序，无匹配返回 None
"""

from fleetctl.core.models import WorkerRole, WorkerStatus
from fleetctl.core.tasks import best_route, preview_task, route_task, score_worker
from fleetctl.core.tasks.routing import (
    DESCRIPTION_WORD_SCORE,
    EXACT_CAPABILITY_SCORE,
    FUZZY_CAPABILITY_SCORE,
    ONLINE_SCORE,
    SESSION_KEY_SCORE,
    is_candidate,
)


class TestScoreWorker:
    def test_exact_capability_match(self, make_worker):
        task = preview_task("Deploy", required_capabilities=["docker"])
        worker = make_worker(capabilities=["docker"], status=WorkerStatus.UNKNOWN)
        result = score_worker(task, worker)
        assert result.score == EXACT_CAPABILITY_SCORE
        assert "has capability: docker" in result.reason

    def test_capability_mentioned_in_text(self, make_worker):
        task = preview_task("Fix the Python build")
        worker = make_worker(capabilities=["python"], status=WorkerStatus.UNKNOWN)
        result = score_worker(task, worker)
        assert result.score == FUZZY_CAPABILITY_SCORE
        assert "task mentions: python" in result.reason

    def test_exact_and_fuzzy_accumulate(self, make_worker):
        task = preview_task("python refactor", required_capabilities=["python"])
        worker = make_worker(capabilities=["python"])
        result = score_worker(task, worker)
        assert result.score == EXACT_CAPABILITY_SCORE + FUZZY_CAPABILITY_SCORE + ONLINE_SCORE

    def test_each_required_capability_adds_exact_score(self, make_worker):
        task = preview_task("Nightly job", required_capabilities=["a", "b"])
        matching = make_worker("matching", capabilities=["a", "b"])
        plain = make_worker("plain")
        gap = score_worker(task, matching).score - score_worker(task, plain).score
        assert gap >= 2 * EXACT_CAPABILITY_SCORE

    def test_description_overlap_only_counts_long_words(self, make_worker):
        task = preview_task("scrape the website for prices")
        worker = make_worker(
            description="Handles scrape jobs and website monitoring",
            status=WorkerStatus.UNKNOWN,
        )
        result = score_worker(task, worker)
        # "scrape"、"website"、"prices" 长度 > 4；"the"、"for" 不计
        assert result.score == 2 * DESCRIPTION_WORD_SCORE
        assert "description overlap: 2 word(s)" in result.reason

    def test_online_and_session_key_bonus(self, make_worker):
        task = preview_task("anything")
        worker = make_worker(session_key="sess-1")
        result = score_worker(task, worker)
        assert result.score == ONLINE_SCORE + SESSION_KEY_SCORE

    def test_no_signal(self, make_worker):
        task = preview_task("anything")
        worker = make_worker(status=WorkerStatus.UNKNOWN)
        result = score_worker(task, worker)
        assert result.score == 0
        assert result.reason == "no specific match"

    def test_duplicate_capabilities_counted_once(self, make_worker):
        task = preview_task("x", required_capabilities=["go", "go"])
        worker = make_worker(capabilities=["go", "go"], status=WorkerStatus.UNKNOWN)
        assert score_worker(task, worker).score == EXACT_CAPABILITY_SCORE


class TestRouteTask:
    def test_excludes_offline_and_orchestrator(self, make_worker):
        offline = make_worker("off", status=WorkerStatus.OFFLINE, capabilities=["go"])
        boss = make_worker("boss", role=WorkerRole.ORCHESTRATOR, capabilities=["go"])
        assert not is_candidate(offline)
        assert not is_candidate(boss)

        task = preview_task("build", required_capabilities=["go"])
        assert route_task(task, [offline, boss]) == []
        assert best_route(task, [offline, boss]) is None

    def test_sorted_by_score_descending(self, make_worker):
        weak = make_worker("weak")
        strong = make_worker("strong", capabilities=["docker"])
        task = preview_task("ship it", required_capabilities=["docker"])

        results = route_task(task, [weak, strong])
        assert [r.worker.name for r in results] == ["strong", "weak"]
        assert best_route(task, [weak, strong]).worker.name == "strong"

    def test_ties_keep_roster_order(self, make_worker):
        first = make_worker("first")
        second = make_worker("second")
        task = preview_task("anything")

        results = route_task(task, [first, second])
        assert [r.worker.name for r in results] == ["first", "second"]
        assert [r.worker.name for r in route_task(task, [second, first])] == ["second", "first"]

    def test_zero_score_workers_dropped(self, make_worker):
        idle = make_worker("idle", status=WorkerStatus.UNKNOWN)
        task = preview_task("anything")
        assert route_task(task, [idle]) == []

    def test_deterministic(self, make_worker):
        roster = [
            make_worker("a", capabilities=["python"]),
            make_worker("b", capabilities=["python"], session_key="s"),
            make_worker("c", status=WorkerStatus.DEGRADED, capabilities=["python"]),
        ]
        task = preview_task("python job", required_capabilities=["python"])
        first = [(r.worker.name, r.score) for r in route_task(task, roster)]
        second = [(r.worker.name, r.score) for r in route_task(task, roster)]
        assert first == second
        assert first[0][0] == "b"
