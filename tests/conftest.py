"""全局测试配置 -- 共享的 Store 与 app fixture"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from pathlib import Path

import pytest
import pytest_asyncio
from chatline.client import MessagingClient
from chatline.core.models import User
from chatline.core.store import StoreGroup, create_store_group
from chatline.gateway.services.push_hub import PushHub
from httpx import ASGITransport

DEFAULT_USERS = {
    "alice": "Alice Liddell",
    "bob": "Bob Marley",
    "carol": "Carol King",
}


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "sqlite" / "test.db"


@pytest_asyncio.fixture
async def store_group(db_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """已初始化的 StoreGroup（临时 SQLite 数据库）"""
    group = await create_store_group(str(db_path))
    yield group
    await group.conn.close()


@pytest.fixture
def add_users(store_group: StoreGroup):
    """登记用户的工厂：await add_users({"u1": "User One"})"""

    async def _add(users: dict[str, str]) -> None:
        for user_id, name in users.items():
            await store_group.user_store.upsert_user(
                User(user_id=user_id, display_name=name, created_at=datetime.now(UTC))
            )
        await store_group.conn.commit()

    return _add


@pytest_asyncio.fixture
async def seeded_store(store_group: StoreGroup, add_users) -> StoreGroup:
    """登记了 alice / bob / carol 的 StoreGroup"""
    await add_users(DEFAULT_USERS)
    return store_group


@pytest_asyncio.fixture
async def app(seeded_store: StoreGroup, db_path: Path, monkeypatch: pytest.MonkeyPatch):
    """创建测试用 FastAPI app，手动初始化 state（绕过 lifespan）"""
    monkeypatch.setenv("CHATLINE_DB_PATH", str(db_path))
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")

    from chatline.gateway.main import create_app

    application = create_app()
    application.state.store_group = seeded_store
    application.state.push_hub = PushHub()
    return application


@pytest.fixture
def push_hub(app) -> PushHub:
    return app.state.push_hub


@pytest_asyncio.fixture
async def client_for(app) -> AsyncGenerator:
    """按 user id 获取直连测试 app 的 MessagingClient：client_for("alice")"""
    clients: dict[str, MessagingClient] = {}

    def _client(user_id: str) -> MessagingClient:
        if user_id not in clients:
            clients[user_id] = MessagingClient(
                "http://test", user_id, transport=ASGITransport(app=app)
            )
        return clients[user_id]

    yield _client

    for c in clients.values():
        await c.aclose()
