"""ConversationView -- 客户端会话视图与乐观消息对账

发送时先在本地插入一条乐观消息（临时 local_id + 新的 client_token），立即渲染；
服务端确认的消息到达时（请求响应或推送）按 client_token 精确替换对应的乐观条目。
服务端消息没有 client_token 时才退回到 (sender_id, content) 匹配，
并且只匹配同样没有 client_token 的乐观条目，因此连续发送两条相同内容不会被合并。

编辑/删除事件按 message_id 应用；视图中不存在该消息时直接丢弃，
下一次完整加载会话时恢复一致。
"""

from datetime import UTC, datetime
from typing import Any

from chatline.core.models import MessageType, PushEvent, PushEventType, derive_key
from pydantic import BaseModel, ConfigDict, Field
from ulid import ULID

LOCAL_ID_PREFIX = "local-"


class LocalMessage(BaseModel):
    """视图中的一条消息；optimistic 为 True 时尚未得到服务端确认"""

    # 推送事件中的时间戳是 ISO 字符串，赋值时同样需要解析
    model_config = ConfigDict(validate_assignment=True)

    local_id: str = Field(description="视图内唯一标识")
    message_id: str | None = Field(default=None, description="服务端 message_id，确认前为 None")
    conversation_key: str
    sender_id: str
    sender_name: str = ""
    receiver_id: str
    receiver_name: str = ""
    content: str
    message_type: MessageType = MessageType.TEXT
    is_read: bool = False
    read_at: datetime | None = None
    edited_at: datetime | None = None
    created_at: datetime
    client_token: str | None = None
    optimistic: bool = False

    @classmethod
    def from_server(cls, data: dict[str, Any], local_id: str | None = None) -> "LocalMessage":
        """由服务端消息 JSON 构造已确认条目"""
        return cls.model_validate(
            {**data, "local_id": local_id or data["message_id"], "optimistic": False}
        )


class ConversationView:
    """单个会话的内存视图（self_id 一侧）"""

    def __init__(self, self_id: str, other_id: str) -> None:
        self.self_id = self_id
        self.other_id = other_id
        self.conversation_key = derive_key(self_id, other_id)
        self._entries: list[LocalMessage] = []

    @property
    def messages(self) -> list[LocalMessage]:
        return list(self._entries)

    @property
    def pending(self) -> list[LocalMessage]:
        return [e for e in self._entries if e.optimistic]

    def __len__(self) -> int:
        return len(self._entries)

    def _find_by_message_id(self, message_id: str) -> LocalMessage | None:
        for entry in self._entries:
            if entry.message_id == message_id:
                return entry
        return None

    def _find_optimistic(self, data: dict[str, Any]) -> LocalMessage | None:
        token = data.get("client_token")
        for entry in self._entries:
            if not entry.optimistic:
                continue
            if token is not None:
                if entry.client_token == token:
                    return entry
            elif (
                entry.client_token is None
                and entry.sender_id == data.get("sender_id")
                and entry.content == data.get("content")
            ):
                return entry
        return None

    def add_optimistic(
        self,
        content: str,
        message_type: MessageType = MessageType.TEXT,
    ) -> LocalMessage:
        """插入一条乐观消息并返回，调用方用其 client_token 发起请求"""
        entry = LocalMessage(
            local_id=f"{LOCAL_ID_PREFIX}{ULID()}",
            conversation_key=self.conversation_key,
            sender_id=self.self_id,
            receiver_id=self.other_id,
            content=content,
            message_type=message_type,
            created_at=datetime.now(UTC),
            client_token=str(ULID()),
            optimistic=True,
        )
        self._entries.append(entry)
        return entry

    def confirm(self, server_message: dict[str, Any]) -> LocalMessage:
        """用服务端确认的消息替换对应的乐观条目

        同一条消息可能经由响应和推送各到达一次，已存在的 message_id 原地更新。
        """
        existing = self._find_by_message_id(server_message["message_id"])
        if existing is not None:
            confirmed = LocalMessage.from_server(server_message, local_id=existing.local_id)
            self._entries[self._entries.index(existing)] = confirmed
            return confirmed

        tentative = self._find_optimistic(server_message)
        if tentative is not None:
            confirmed = LocalMessage.from_server(server_message, local_id=tentative.local_id)
            self._entries[self._entries.index(tentative)] = confirmed
            return confirmed

        confirmed = LocalMessage.from_server(server_message)
        self._entries.append(confirmed)
        return confirmed

    def rollback(self, local_id: str) -> bool:
        """移除发送失败的乐观条目"""
        for i, entry in enumerate(self._entries):
            if entry.local_id == local_id and entry.optimistic:
                del self._entries[i]
                return True
        return False

    def load(self, messages: list[dict[str, Any]]) -> None:
        """用一次完整加载的结果替换已确认状态，保留仍未确认的乐观条目"""
        confirmed = [LocalMessage.from_server(m) for m in messages]
        tokens = {m.client_token for m in confirmed if m.client_token}
        still_pending = [
            e for e in self._entries if e.optimistic and e.client_token not in tokens
        ]
        self._entries = confirmed + still_pending

    def apply_event(self, event: PushEvent) -> bool:
        """应用推送事件

        Returns:
            事件是否改变了视图；属于其他会话或引用未加载消息的事件返回 False
        """
        payload = event.payload
        if event.type == PushEventType.NEW_MESSAGE:
            message = payload.get("message") or {}
            if message.get("conversation_key") != self.conversation_key:
                return False
            self.confirm(message)
            return True

        if payload.get("conversation_key") != self.conversation_key:
            return False

        if event.type == PushEventType.MESSAGE_EDITED:
            entry = self._find_by_message_id(payload["message_id"])
            if entry is None:
                return False
            entry.content = payload["new_content"]
            entry.edited_at = payload.get("edited_at")
            return True

        if event.type == PushEventType.MESSAGE_DELETED:
            entry = self._find_by_message_id(payload["message_id"])
            if entry is None:
                return False
            self._entries.remove(entry)
            return True

        if event.type == PushEventType.MESSAGES_READ:
            if payload.get("reader_id") != self.other_id:
                return False
            changed = False
            for entry in self._entries:
                if entry.sender_id == self.self_id and not entry.optimistic and not entry.is_read:
                    entry.is_read = True
                    entry.read_at = payload.get("read_at")
                    changed = True
            return changed

        return False
