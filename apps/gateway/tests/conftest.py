"""apps/gateway 测试配置 -- 走真实 lifespan 的 FastAPI app + httpx AsyncClient"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient


@pytest_asyncio.fixture
async def app(fleet_env: Path) -> AsyncGenerator[FastAPI, None]:
    """创建 app 并执行 lifespan（数据库位于临时目录）"""
    from fleetctl.gateway.main import create_app

    application = create_app()
    async with application.router.lifespan_context(application):
        yield application


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
