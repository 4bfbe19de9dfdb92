"""推送事件 Payload 子类型

每个 payload 只携带客户端无需重新拉取即可更新视图的字段。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class NewMessagePayload(BaseModel):
    """new-message 事件 payload"""

    message: dict[str, Any] = Field(description="完整的已持久化消息")
    client_token: str | None = Field(default=None, description="发送方的关联令牌")


class MessageEditedPayload(BaseModel):
    """message-edited 事件 payload"""

    message_id: str
    conversation_key: str
    sender_id: str
    new_content: str
    edited_at: datetime


class MessageDeletedPayload(BaseModel):
    """message-deleted 事件 payload"""

    message_id: str
    conversation_key: str
    sender_id: str


class MessagesReadPayload(BaseModel):
    """messages-read 事件 payload（已读回执）"""

    reader_id: str = Field(description="执行已读的接收方")
    reader_name: str = Field(description="接收方显示名称")
    conversation_key: str
    message_count: int = Field(description="本次被标记为已读的消息数")
    read_at: datetime
