"""ConversationIndex SQLite 实现

按用户反规范化的会话成员索引：每个会话为两个参与者各写一行。
与消息写入在同一事务内更新（见 transaction.append_message_with_index），
查询会话列表时无需扫描整张 messages 表。
"""

import aiosqlite

from .errors import storage_errors


class SqliteConversationIndex:
    """ConversationIndex 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def touch_pair(
        self,
        conversation_key: str,
        user_a: str,
        user_b: str,
        last_message_at: str,
    ) -> None:
        """为两个参与者登记会话并刷新最后活跃时间

        注意：此方法不自动提交事务，需由调用方管理事务。
        """
        async with storage_errors(self._conn, "touch_pair", conversation_key):
            for user_id, other_user_id in ((user_a, user_b), (user_b, user_a)):
                await self._conn.execute(
                    """
                    INSERT INTO conversation_index
                        (user_id, conversation_key, other_user_id, last_message_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(user_id, conversation_key) DO UPDATE
                    SET last_message_at = MAX(last_message_at, excluded.last_message_at)
                    """,
                    (user_id, conversation_key, other_user_id, last_message_at),
                )

    async def list_keys_for(self, user_id: str) -> list[str]:
        """查询用户参与的所有会话 key，按最后活跃时间倒序"""
        async with storage_errors(self._conn, "list_keys_for"):
            cursor = await self._conn.execute(
                """
                SELECT conversation_key FROM conversation_index
                WHERE user_id = ?
                ORDER BY last_message_at DESC
                """,
                (user_id,),
            )
            rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def clear(self) -> None:
        """清空索引（重建前调用，不自动提交）"""
        async with storage_errors(self._conn, "clear_index"):
            await self._conn.execute("DELETE FROM conversation_index")
