"""Store Protocol 接口定义

定义会话存储、用户目录、会话索引的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
"""

from typing import Protocol

from ..models.enums import MessageType
from ..models.message import Message
from ..models.user import User


class ConversationStoreProtocol(Protocol):
    """单个会话分区的存储接口"""

    @property
    def key(self) -> str: ...

    async def append(
        self,
        sender_id: str,
        sender_name: str,
        receiver_id: str,
        receiver_name: str,
        content: str,
        message_type: MessageType = MessageType.TEXT,
        client_token: str | None = None,
    ) -> Message:
        """追加消息，返回持久化记录"""
        ...

    async def query(self, limit: int, offset: int = 0) -> list[Message]:
        """按追加顺序正序返回窗口内的未删除消息"""
        ...

    async def mark_read(self, sender_id: str, receiver_id: str) -> int:
        """批量标记已读，返回受影响条数"""
        ...

    async def edit(self, message_id: str, requestor_id: str, new_content: str) -> Message:
        """编辑消息（仅发送方）"""
        ...

    async def delete(self, message_id: str, requestor_id: str) -> Message:
        """删除消息（仅发送方，写入墓碑）"""
        ...

    async def latest(self) -> Message | None:
        """最新一条未删除消息"""
        ...

    async def count_unread(self, user_id: str) -> int:
        """发给 user_id 的未读消息数"""
        ...


class MessageStore(Protocol):
    """会话分区入口"""

    def for_key(self, conversation_key: str) -> ConversationStoreProtocol:
        """取得会话分区句柄"""
        ...

    async def find_message(self, message_id: str) -> Message | None:
        """按 message_id 全局查询"""
        ...


class UserDirectory(Protocol):
    """用户目录接口 -- 由外部身份系统维护"""

    async def get_user(self, user_id: str) -> User | None:
        """根据 user_id 查询用户"""
        ...

    async def get_display_name(self, user_id: str) -> str:
        """查询显示名称，未登记时抛出 NotFoundError"""
        ...


class ConversationIndex(Protocol):
    """按用户的会话成员索引"""

    async def list_keys_for(self, user_id: str) -> list[str]:
        """查询用户参与的会话 key"""
        ...
