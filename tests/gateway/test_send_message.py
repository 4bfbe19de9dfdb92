"""POST /api/messages 测试

测试内容：
1. 发送成功返回 201 与消息体
2. 字段校验在存储访问之前拒绝
3. 身份缺失返回 401
4. new-message 只推送给接收方
5. 存储故障返回 STORAGE_ERROR 错误响应体
"""

from chatline.core.config import MESSAGE_MAX_LENGTH
from chatline.core.models import PushEventType


class TestSendMessage:
    async def test_send_returns_201(self, as_user):
        resp = await as_user("alice").post(
            "/api/messages",
            json={"receiver_id": "bob", "content": " hi ", "client_token": "tok-1"},
        )
        assert resp.status_code == 201
        message = resp.json()["message"]
        assert message["content"] == "hi"
        assert message["sender_id"] == "alice"
        assert message["sender_name"] == "Alice Liddell"
        assert message["receiver_name"] == "Bob Marley"
        assert message["conversation_key"] == "dm:alice:bob"
        assert message["message_type"] == "text"
        assert message["is_read"] is False
        assert message["client_token"] == "tok-1"
        assert "seq" not in message

    async def test_message_type(self, as_user):
        resp = await as_user("alice").post(
            "/api/messages",
            json={"receiver_id": "bob", "content": "pic.png", "message_type": "image"},
        )
        assert resp.status_code == 201
        assert resp.json()["message"]["message_type"] == "image"

    async def test_requires_identity(self, anonymous):
        resp = await anonymous.post("/api/messages", json={"receiver_id": "bob", "content": "hi"})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "UNAUTHENTICATED"

    async def test_empty_content(self, as_user):
        resp = await as_user("alice").post(
            "/api/messages", json={"receiver_id": "bob", "content": "   "}
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_oversized_content(self, as_user):
        resp = await as_user("alice").post(
            "/api/messages",
            json={"receiver_id": "bob", "content": "x" * (MESSAGE_MAX_LENGTH + 1)},
        )
        assert resp.status_code == 400

    async def test_invalid_message_type(self, as_user):
        resp = await as_user("alice").post(
            "/api/messages",
            json={"receiver_id": "bob", "content": "hi", "message_type": "video"},
        )
        assert resp.status_code == 400

    async def test_self_message_rejected(self, as_user):
        resp = await as_user("alice").post(
            "/api/messages", json={"receiver_id": "alice", "content": "me"}
        )
        assert resp.status_code == 400

    async def test_unknown_receiver(self, as_user, app):
        resp = await as_user("alice").post(
            "/api/messages", json={"receiver_id": "ghost", "content": "hi"}
        )
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "USER_NOT_FOUND"
        index = app.state.store_group.conversation_index
        assert await index.list_keys_for("alice") == []

    async def test_unknown_sender(self, as_user):
        resp = await as_user("mallory").post(
            "/api/messages", json={"receiver_id": "bob", "content": "hi"}
        )
        assert resp.status_code == 404

    async def test_missing_field_is_422(self, as_user):
        resp = await as_user("alice").post("/api/messages", json={"content": "hi"})
        assert resp.status_code == 422

    async def test_separator_in_receiver_id(self, as_user):
        resp = await as_user("alice").post(
            "/api/messages", json={"receiver_id": "bob:x", "content": "hi"}
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "INVALID_ARGUMENT"


class TestNewMessagePush:
    async def test_pushed_to_receiver_only(self, as_user, push_hub):
        bob_queue = await push_hub.subscribe("bob")
        alice_queue = await push_hub.subscribe("alice")

        resp = await as_user("alice").post(
            "/api/messages",
            json={"receiver_id": "bob", "content": "hi", "client_token": "tok-9"},
        )
        assert resp.status_code == 201

        assert alice_queue.empty()
        event = bob_queue.get_nowait()
        assert event.type == PushEventType.NEW_MESSAGE
        assert event.user_id == "bob"
        assert event.payload["client_token"] == "tok-9"
        assert event.payload["message"]["message_id"] == resp.json()["message"]["message_id"]

    async def test_offline_receiver_does_not_fail_send(self, as_user, push_hub):
        assert not push_hub.is_online("bob")
        resp = await as_user("alice").post(
            "/api/messages", json={"receiver_id": "bob", "content": "hi"}
        )
        assert resp.status_code == 201


class TestStorageFailure:
    async def test_storage_error_envelope(self, as_user, seeded_store):
        await seeded_store.conn.execute("DROP TABLE users")
        await seeded_store.conn.commit()

        resp = await as_user("alice").post(
            "/api/messages", json={"receiver_id": "bob", "content": "hi"}
        )
        assert resp.status_code == 500
        assert resp.json()["error"]["code"] == "STORAGE_ERROR"

    async def test_unread_count_storage_error(self, as_user, seeded_store):
        await seeded_store.conn.execute("DROP TABLE conversation_index")
        await seeded_store.conn.commit()

        resp = await as_user("alice").get("/api/messages/unread-count")
        assert resp.status_code == 500
        assert resp.json()["error"]["code"] == "STORAGE_ERROR"
