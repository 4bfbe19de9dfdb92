"""消息写入 + 会话索引原子事务封装

在同一 SQLite 事务内提交消息记录和两个参与者的会话索引行，
保证会话列表永远不会缺少一条已持久化消息所在的会话。
"""

from typing import TYPE_CHECKING

import aiosqlite

from ..models.message import Message
from .conversation_index import SqliteConversationIndex

if TYPE_CHECKING:
    from .conversation_store import ConversationStore


async def append_message_with_index(
    conn: aiosqlite.Connection,
    conversation_store: "ConversationStore",
    index: SqliteConversationIndex,
    message: Message,
) -> int:
    """在同一事务内原子提交消息写入和会话索引更新

    Args:
        conn: 数据库连接（需在同一连接上操作以保证事务性）
        conversation_store: 目标会话句柄
        index: 会话索引
        message: 要写入的消息

    Returns:
        存储层分配的追加序号 seq

    Raises:
        Exception: 如果事务提交失败，自动回滚
    """
    try:
        seq = await conversation_store.insert_message(message)
        await index.touch_pair(
            message.conversation_key,
            message.sender_id,
            message.receiver_id,
            message.created_at.isoformat(),
        )

        # 原子提交
        await conn.commit()
        return seq
    except Exception:
        await conn.rollback()
        raise
