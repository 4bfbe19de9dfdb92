"""ConversationRegistry -- 会话发现与摘要聚合

从按用户的会话索引找出用户参与的所有分区，再逐个分区读取最新消息和未读数。
成员关系一律按会话 key 拆分后的参与者精确匹配，不做子串匹配。

代价模型：每次查询对用户参与的 P 个分区各执行一次最新消息查询和一次计数，O(P)。
摘要按请求重新计算，不跨请求缓存。

rebuild_conversation_index() 从 messages 表全量重建会话索引。
"""

import time

import structlog

from .models.conversation import ConversationSummary, decompose_key, is_participant
from .store import StoreGroup
from .store.protocols import ConversationIndex, MessageStore

log = structlog.get_logger()


class ConversationRegistry:
    """跨分区的只读聚合视图"""

    def __init__(
        self,
        message_store: MessageStore,
        conversation_index: ConversationIndex,
    ) -> None:
        self._messages = message_store
        self._index = conversation_index

    @classmethod
    def from_store_group(cls, store_group: StoreGroup) -> "ConversationRegistry":
        return cls(store_group.message_store, store_group.conversation_index)

    async def list_conversations_for(self, user_id: str) -> list[str]:
        """列出 user_id 参与的所有会话 key"""
        keys = await self._index.list_keys_for(user_id)
        return [key for key in keys if is_participant(key, user_id)]

    async def get_summaries(self, user_id: str) -> list[ConversationSummary]:
        """构建会话摘要列表，按最新消息时间倒序

        所有消息都已删除的会话不出现在列表中。
        """
        summaries: list[tuple[ConversationSummary, int]] = []
        for key in await self.list_conversations_for(user_id):
            handle = self._messages.for_key(key)
            last_message = await handle.latest()
            if last_message is None:
                continue

            if last_message.sender_id == user_id:
                other_user_id = last_message.receiver_id
                other_user_name = last_message.receiver_name
            else:
                other_user_id = last_message.sender_id
                other_user_name = last_message.sender_name

            summaries.append(
                (
                    ConversationSummary(
                        conversation_key=key,
                        other_user_id=other_user_id,
                        other_user_name=other_user_name,
                        last_message=last_message,
                        unread_count=await handle.count_unread(user_id),
                    ),
                    last_message.seq,
                )
            )

        summaries.sort(
            key=lambda item: (item[0].last_message.created_at, item[1]),
            reverse=True,
        )
        return [summary for summary, _ in summaries]

    async def get_total_unread(self, user_id: str) -> int:
        """user_id 在所有会话中的未读消息总数"""
        total = 0
        for key in await self.list_conversations_for(user_id):
            total += await self._messages.for_key(key).count_unread(user_id)
        return total

    async def get_stats(self, user_id: str) -> dict:
        """会话统计：会话总数、未读总数、各会话概览"""
        summaries = await self.get_summaries(user_id)
        return {
            "total_conversations": len(summaries),
            "total_unread_messages": sum(s.unread_count for s in summaries),
            "conversations": [
                {
                    "conversation_key": s.conversation_key,
                    "other_user_name": s.other_user_name,
                    "last_message_at": s.last_message.created_at.isoformat(),
                    "unread_count": s.unread_count,
                }
                for s in summaries
            ],
        }


async def rebuild_conversation_index(store_group: StoreGroup) -> int:
    """从 messages 表重建 conversation_index 表

    流程：
    1. 枚举 messages 表中所有分区 key 及最后写入时间
    2. 拆分 key 得到两个参与者
    3. 清空索引后为每个分区写入两行

    Returns:
        重建的会话数
    """
    start_time = time.monotonic()

    async with store_group.write_lock:
        partitions = await store_group.message_store.list_conversation_keys()
        await log.ainfo("conversation_index_rebuild_started", partition_count=len(partitions))

        try:
            await store_group.conversation_index.clear()
            for key, last_message_at in partitions:
                user_a, user_b = decompose_key(key)
                await store_group.conversation_index.touch_pair(
                    key, user_a, user_b, last_message_at
                )
            await store_group.conn.commit()
        except Exception:
            await store_group.conn.rollback()
            raise

    elapsed_ms = int((time.monotonic() - start_time) * 1000)
    await log.ainfo(
        "conversation_index_rebuild_completed",
        conversation_count=len(partitions),
        elapsed_ms=elapsed_ms,
    )
    return len(partitions)
