"""MessagingService 测试 -- 推送失败不影响写入结果"""

from datetime import datetime

import pytest
from chatline.core.exceptions import ValidationError
from chatline.core.models import PushEvent
from chatline.gateway.services.messaging_service import MessagingService
from chatline.gateway.services.push_hub import PushHub


class ExplodingHub(PushHub):
    async def publish(self, event: PushEvent) -> int:
        raise RuntimeError("push backend down")


class TestMessagingService:
    async def test_push_failure_not_surfaced(self, seeded_store):
        service = MessagingService(seeded_store, ExplodingHub())
        message = await service.send_message("alice", "bob", "hi")
        assert message.seq > 0

        _, messages, marked = await service.get_conversation("bob", "alice", limit=10)
        assert [m.message_id for m in messages] == [message.message_id]
        assert marked == 1

    async def test_without_hub(self, seeded_store):
        service = MessagingService(seeded_store)
        message = await service.send_message("alice", "bob", "hi")
        edited = await service.edit_message(message.message_id, "alice", "bob", "hello")
        assert edited.content == "hello"
        await service.delete_message(message.message_id, "alice", "bob")
        assert await service.list_conversations("bob") == []

    async def test_validation_before_storage(self, seeded_store):
        service = MessagingService(seeded_store)
        with pytest.raises(ValidationError):
            await service.send_message("alice", "bob", "")
        assert await seeded_store.conversation_index.list_keys_for("alice") == []

    async def test_query_returns_window_before_marking(self, seeded_store):
        """返回的消息反映的是标记已读之前的状态"""
        service = MessagingService(seeded_store)
        await service.send_message("alice", "bob", "hi")
        _, messages, marked = await service.get_conversation("bob", "alice", limit=10)
        assert marked == 1
        assert messages[0].is_read is False

    async def test_read_receipt_matches_stored_timestamp(self, seeded_store):
        hub = PushHub()
        service = MessagingService(seeded_store, hub)
        alice_queue = await hub.subscribe("alice")
        message = await service.send_message("alice", "bob", "hi")

        await service.get_conversation("bob", "alice", limit=10)
        receipt = alice_queue.get_nowait()
        stored = await seeded_store.message_store.find_message(message.message_id)
        assert datetime.fromisoformat(receipt.payload["read_at"]) == stored.read_at
