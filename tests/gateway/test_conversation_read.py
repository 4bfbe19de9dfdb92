"""会话加载与已读测试

GET /api/messages/conversations/{other_user_id}
PUT /api/messages/conversations/{other_user_id}/read
"""

from chatline.core.config import MAX_PAGE_SIZE
from chatline.core.models import PushEventType


async def _send(client, receiver_id: str, content: str) -> dict:
    resp = await client.post(
        "/api/messages", json={"receiver_id": receiver_id, "content": content}
    )
    assert resp.status_code == 201
    return resp.json()["message"]


class TestGetConversation:
    async def test_oldest_first_and_marks_read(self, as_user):
        for text in ("one", "two", "three"):
            await _send(as_user("alice"), "bob", text)

        resp = await as_user("bob").get("/api/messages/conversations/alice")
        assert resp.status_code == 200
        data = resp.json()
        assert [m["content"] for m in data["messages"]] == ["one", "two", "three"]
        assert data["other_user"] == {"user_id": "alice", "display_name": "Alice Liddell"}
        assert data["total"] == 3
        assert data["marked_read"] == 3

        again = await as_user("bob").get("/api/messages/conversations/alice")
        assert again.json()["marked_read"] == 0
        assert all(m["is_read"] for m in again.json()["messages"])

    async def test_sender_viewing_does_not_mark_read(self, as_user):
        await _send(as_user("alice"), "bob", "hi")
        resp = await as_user("alice").get("/api/messages/conversations/bob")
        assert resp.json()["marked_read"] == 0
        unread = await as_user("bob").get("/api/messages/unread-count")
        assert unread.json()["unread_count"] == 1

    async def test_pagination_window(self, as_user):
        for i in range(5):
            await _send(as_user("alice"), "bob", f"m{i}")
        resp = await as_user("alice").get(
            "/api/messages/conversations/bob", params={"limit": 2, "offset": 1}
        )
        assert [m["content"] for m in resp.json()["messages"]] == ["m2", "m3"]

    async def test_invalid_limit(self, as_user):
        for limit in (0, MAX_PAGE_SIZE + 1):
            resp = await as_user("alice").get(
                "/api/messages/conversations/bob", params={"limit": limit}
            )
            assert resp.status_code == 400

    async def test_unknown_other_user(self, as_user):
        resp = await as_user("alice").get("/api/messages/conversations/ghost")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "USER_NOT_FOUND"

    async def test_empty_conversation(self, as_user):
        resp = await as_user("alice").get("/api/messages/conversations/carol")
        assert resp.status_code == 200
        assert resp.json()["messages"] == []
        assert resp.json()["marked_read"] == 0


class TestReadReceipts:
    async def test_read_push_to_sender(self, as_user, push_hub):
        await _send(as_user("alice"), "bob", "hi")
        await _send(as_user("alice"), "bob", "there")
        alice_queue = await push_hub.subscribe("alice")
        bob_queue = await push_hub.subscribe("bob")

        await as_user("bob").get("/api/messages/conversations/alice")

        event = alice_queue.get_nowait()
        assert event.type == PushEventType.MESSAGES_READ
        assert event.payload["reader_id"] == "bob"
        assert event.payload["reader_name"] == "Bob Marley"
        assert event.payload["conversation_key"] == "dm:alice:bob"
        assert event.payload["message_count"] == 2
        assert bob_queue.empty()

    async def test_no_push_when_nothing_changed(self, as_user, push_hub):
        await _send(as_user("alice"), "bob", "hi")
        await as_user("bob").get("/api/messages/conversations/alice")
        alice_queue = await push_hub.subscribe("alice")

        await as_user("bob").get("/api/messages/conversations/alice")
        assert alice_queue.empty()

    async def test_explicit_mark_read(self, as_user):
        await _send(as_user("alice"), "bob", "hi")
        resp = await as_user("bob").put("/api/messages/conversations/alice/read")
        assert resp.status_code == 200
        assert resp.json() == {"modified_count": 1}

        again = await as_user("bob").put("/api/messages/conversations/alice/read")
        assert again.json() == {"modified_count": 0}

    async def test_mark_own_conversation_rejected(self, as_user):
        resp = await as_user("bob").put("/api/messages/conversations/bob/read")
        assert resp.status_code == 400
