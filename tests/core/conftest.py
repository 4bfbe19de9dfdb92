"""core 测试配置 -- 会话句柄与消息构造 fixture"""

import pytest
from chatline.core.store import StoreGroup


@pytest.fixture
def alice_bob(store_group: StoreGroup):
    """alice <-> bob 会话句柄"""
    return store_group.message_store.for_pair("alice", "bob")


@pytest.fixture
def send(store_group: StoreGroup):
    """追加消息的快捷方式：await send("alice", "bob", "hi")"""

    async def _send(sender_id: str, receiver_id: str, content: str, **kwargs):
        handle = store_group.message_store.for_pair(sender_id, receiver_id)
        return await handle.append(
            sender_id=sender_id,
            sender_name=sender_id.title(),
            receiver_id=receiver_id,
            receiver_name=receiver_id.title(),
            content=content,
            **kwargs,
        )

    return _send
