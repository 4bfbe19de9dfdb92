"""MessagingClient 测试

测试内容：
1. send() 乐观插入后由响应确认
2. 发送失败时回滚乐观条目并抛出 SendFailedError
3. events() 解析 SSE 流（忽略心跳注释）
"""

import json

import httpx
import pytest
from chatline.client import ClientError, MessagingClient, SendFailedError
from chatline.core.models import PushEvent, PushEventType


class TestSend:
    async def test_send_confirms_optimistic_entry(self, client_for):
        alice = client_for("alice")
        view = alice.open_view("bob")

        entry = await alice.send(view, "hi")
        assert not entry.optimistic
        assert entry.message_id is not None
        assert entry.local_id.startswith("local-")
        assert entry.sender_name == "Alice Liddell"
        assert view.pending == []
        assert len(view) == 1

    async def test_failed_send_rolls_back(self, client_for):
        alice = client_for("alice")
        view = alice.open_view("ghost")

        with pytest.raises(SendFailedError) as exc_info:
            await alice.send(view, "hello?")
        assert exc_info.value.status_code == 404
        assert exc_info.value.code == "USER_NOT_FOUND"
        assert exc_info.value.local_id.startswith("local-")
        assert len(view) == 0

    async def test_transport_error_rolls_back(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with MessagingClient(
            "http://test", "alice", transport=httpx.MockTransport(handler)
        ) as alice:
            view = alice.open_view("bob")
            with pytest.raises(SendFailedError) as exc_info:
                await alice.send(view, "hi")
        assert exc_info.value.code == "TRANSPORT_ERROR"
        assert len(view) == 0

    async def test_identity_header_sent(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["user"] = request.headers.get("x-user-id")
            return httpx.Response(200, json={"unread_count": 4})

        async with MessagingClient(
            "http://test", "alice", transport=httpx.MockTransport(handler)
        ) as alice:
            assert await alice.unread_count() == 4
        assert seen["user"] == "alice"


class TestRoundTrip:
    async def test_edit_delete_and_reload(self, client_for):
        alice, bob = client_for("alice"), client_for("bob")
        alice_view = alice.open_view("bob")
        first = await alice.send(alice_view, "one")
        second = await alice.send(alice_view, "two")

        edited = await alice.edit(first.message_id, "bob", "uno")
        assert edited["content"] == "uno"
        assert await alice.delete(second.message_id, "bob") is True

        bob_view = bob.open_view("alice")
        data = await bob.load_conversation(bob_view)
        assert data["marked_read"] == 1
        assert [m.content for m in bob_view.messages] == ["uno"]
        assert await bob.unread_count() == 0

    async def test_list_mark_read_and_stats(self, client_for):
        alice, bob = client_for("alice"), client_for("bob")
        await alice.send(alice.open_view("bob"), "hi")

        [summary] = await bob.list_conversations()
        assert summary["other_user_id"] == "alice"
        assert await bob.mark_read("alice") == 1
        stats = await bob.stats()
        assert stats["total_unread_messages"] == 0

    async def test_error_response(self, client_for):
        alice = client_for("alice")
        with pytest.raises(ClientError) as exc_info:
            await alice.edit("01JNONEXISTENT0000000000", "bob", "x")
        assert exc_info.value.status_code == 404
        assert exc_info.value.code == "MESSAGE_NOT_FOUND"


class TestEvents:
    async def test_parses_event_stream(self):
        first = PushEvent(
            type=PushEventType.MESSAGE_DELETED,
            user_id="alice",
            payload={"message_id": "m1", "conversation_key": "dm:alice:bob", "sender_id": "bob"},
        )
        second = PushEvent(
            type=PushEventType.MESSAGES_READ,
            user_id="alice",
            payload={"reader_id": "bob", "message_count": 2},
        )
        body = (
            ": heartbeat\r\n\r\n"
            f"id: {first.event_id}\r\nevent: message-deleted\r\n"
            f"data: {json.dumps(first.to_sse_data())}\r\n\r\n"
            ": heartbeat\r\n\r\n"
            f"id: {second.event_id}\r\nevent: messages-read\r\n"
            f"data: {json.dumps(second.to_sse_data())}\r\n\r\n"
        )

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/stream/messages"
            return httpx.Response(
                200,
                headers={"content-type": "text/event-stream"},
                content=body.encode(),
            )

        async with MessagingClient(
            "http://test", "alice", transport=httpx.MockTransport(handler)
        ) as alice:
            events = [event async for event in alice.events()]

        assert events == [first, second]

    async def test_stream_rejected(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                401, json={"error": {"code": "UNAUTHENTICATED", "message": "no identity"}}
            )

        async with MessagingClient(
            "http://test", "alice", transport=httpx.MockTransport(handler)
        ) as alice:
            with pytest.raises(ClientError) as exc_info:
                async for _ in alice.events():
                    pass
        assert exc_info.value.code == "UNAUTHENTICATED"
