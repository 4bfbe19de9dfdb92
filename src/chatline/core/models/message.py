"""Message Domain Model

一条消息只属于一个会话（conversation_key）。
message_id 使用 ULID 格式，按创建时间有序；
seq 为存储层分配的追加序号，会话内排序以 seq 为准。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import MessageState, MessageType


class Message(BaseModel):
    """Message 数据模型

    is_read 只能由接收方的已读操作置为 True；
    content/edited_at 只能由发送方修改；
    is_deleted 为 True 的墓碑记录保留用于审计，但不出现在任何读取路径中。
    """

    message_id: str = Field(description="唯一标识，ULID 格式，时间有序")
    seq: int = Field(default=0, description="存储层追加序号")
    conversation_key: str = Field(description="所属会话 key")
    sender_id: str = Field(description="发送者 ID")
    sender_name: str = Field(description="发送者显示名称")
    receiver_id: str = Field(description="接收者 ID")
    receiver_name: str = Field(description="接收者显示名称")
    content: str = Field(description="消息内容")
    message_type: MessageType = Field(default=MessageType.TEXT, description="消息类型")
    is_read: bool = Field(default=False, description="接收方是否已读")
    read_at: datetime | None = Field(default=None, description="已读时间")
    edited_at: datetime | None = Field(default=None, description="最后编辑时间")
    is_deleted: bool = Field(default=False, description="墓碑标记")
    deleted_at: datetime | None = Field(default=None, description="删除时间")
    created_at: datetime = Field(description="服务端创建时间")
    client_token: str | None = Field(
        default=None,
        description="客户端生成的关联令牌，原样回传，仅用于乐观消息对账",
    )

    @property
    def state(self) -> MessageState:
        """当前生命周期状态"""
        if self.is_deleted:
            return MessageState.DELETED
        if self.is_read:
            return MessageState.READ
        return MessageState.SENT

    @property
    def is_edited(self) -> bool:
        return self.edited_at is not None

    def to_payload(self) -> dict:
        """序列化为 API / 推送事件使用的 JSON 兼容字典（不含内部序号）"""
        return self.model_dump(mode="json", exclude={"seq"})
