"""健康检查与中间件测试

测试内容：
1. /health 永远 200
2. /ready 报告 sqlite / policy / 磁盘检查
3. 响应头包含 X-Request-ID，可沿用调用方传入的值
"""

from fleetctl.gateway.middleware.trace_mw import extract_task_id


class TestHealth:
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    async def test_ready(self, client):
        resp = await client.get("/ready")
        body = resp.json()
        assert body["checks"]["sqlite"] == "ok"
        assert body["checks"]["policy"] == "default"
        assert isinstance(body["checks"]["disk_space_mb"], int)
        if resp.status_code == 200:
            assert body["status"] == "ready"

    async def test_ready_reports_sqlite_failure(self, app, client):
        await app.state.store_group.conn.close()
        resp = await client.get("/ready")
        assert resp.status_code == 503
        assert resp.json()["status"] == "not_ready"
        assert resp.json()["checks"]["sqlite"].startswith("error")


class TestMiddleware:
    async def test_request_id_generated(self, client):
        resp = await client.get("/health")
        assert len(resp.headers["X-Request-ID"]) == 26

    async def test_request_id_propagated(self, client):
        resp = await client.get("/health", headers={"X-Request-ID": "req-123"})
        assert resp.headers["X-Request-ID"] == "req-123"

    def test_extract_task_id(self):
        assert extract_task_id("/api/tasks/01JTASK/cancel") == "01JTASK"
        assert extract_task_id("/api/tasks/01JTASK") == "01JTASK"
        assert extract_task_id("/api/tasks/route") is None
        assert extract_task_id("/api/tasks") is None
        assert extract_task_id("/api/agents/alpha") is None
