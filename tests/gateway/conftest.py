"""gateway 测试配置 -- 按身份区分的 httpx AsyncClient"""

from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient


@pytest_asyncio.fixture
async def anonymous(app) -> AsyncGenerator[AsyncClient, None]:
    """不携带身份请求头的客户端"""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def as_user(app) -> AsyncGenerator:
    """按 user id 获取已认证客户端：as_user("alice")"""
    clients: dict[str, AsyncClient] = {}

    def _client(user_id: str) -> AsyncClient:
        if user_id not in clients:
            clients[user_id] = AsyncClient(
                transport=ASGITransport(app=app),
                base_url="http://test",
                headers={"X-User-Id": user_id},
            )
        return clients[user_id]

    yield _client

    for ac in clients.values():
        await ac.aclose()
