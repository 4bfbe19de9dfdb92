"""ConversationStore SQLite 实现

每个会话（一对参与者）对应 messages 表中一个 conversation_key 分区。
MessageStore.for_key() 返回该分区的 ConversationStore 句柄，句柄缓存在有界 LRU 中。
分区是惰性的：第一次 append 之前不存在任何记录。

会话内顺序即追加顺序（seq）。编辑/删除用单条条件 UPDATE 同时完成所有权检查与修改，
失败时再读取消息区分 "不存在" 与 "无权限"。
"""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from typing import NoReturn

import aiosqlite
from ulid import ULID

from ..exceptions import InvalidArgumentError, NotFoundError
from ..lifecycle import check_can_delete, check_can_edit, check_can_mark_read
from ..models.conversation import decompose_key, derive_key
from ..models.enums import MessageType
from ..models.message import Message
from ..validation import validate_content
from .conversation_index import SqliteConversationIndex
from .errors import storage_errors
from .handle_cache import HandleCache
from .transaction import append_message_with_index

_MESSAGE_COLUMNS = (
    "seq, message_id, conversation_key, sender_id, sender_name, receiver_id, "
    "receiver_name, content, message_type, is_read, read_at, edited_at, "
    "is_deleted, deleted_at, created_at, client_token"
)


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def row_to_message(row: aiosqlite.Row) -> Message:
    """将数据库行（_MESSAGE_COLUMNS 顺序）转换为 Message 模型"""
    return Message(
        seq=row[0],
        message_id=row[1],
        conversation_key=row[2],
        sender_id=row[3],
        sender_name=row[4],
        receiver_id=row[5],
        receiver_name=row[6],
        content=row[7],
        message_type=row[8],
        is_read=bool(row[9]),
        read_at=_parse_ts(row[10]),
        edited_at=_parse_ts(row[11]),
        is_deleted=bool(row[12]),
        deleted_at=_parse_ts(row[13]),
        created_at=datetime.fromisoformat(row[14]),
        client_token=row[15],
    )


async def fetch_message(conn: aiosqlite.Connection, message_id: str) -> Message | None:
    """按 message_id 查询消息（不限会话，包含墓碑）"""
    cursor = await conn.execute(
        f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE message_id = ?",
        (message_id,),
    )
    row = await cursor.fetchone()
    return row_to_message(row) if row else None


class ConversationStore:
    """单个会话分区的存储句柄"""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        conversation_key: str,
        index: SqliteConversationIndex,
        write_lock: asyncio.Lock,
    ) -> None:
        self._conn = conn
        self._key = conversation_key
        self._index = index
        self._write_lock = write_lock
        self._participants = decompose_key(conversation_key)

    @property
    def key(self) -> str:
        return self._key

    @property
    def participants(self) -> tuple[str, str]:
        return self._participants

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
        """追加一条消息并返回持久化后的记录

        不做幂等去重：重复调用会产生多条消息。client_token 仅原样保存用于客户端对账。
        """
        if derive_key(sender_id, receiver_id) != self._key:
            raise InvalidArgumentError(
                f"({sender_id}, {receiver_id}) does not belong to conversation {self._key}"
            )
        message = Message(
            message_id=str(ULID()),
            conversation_key=self._key,
            sender_id=sender_id,
            sender_name=sender_name,
            receiver_id=receiver_id,
            receiver_name=receiver_name,
            content=validate_content(content),
            message_type=message_type,
            created_at=datetime.now(UTC),
            client_token=client_token,
        )
        async with self._write_lock:
            async with storage_errors(self._conn, "append", self._key):
                seq = await append_message_with_index(
                    self._conn, self, self._index, message
                )
        return message.model_copy(update={"seq": seq})

    async def insert_message(self, message: Message) -> int:
        """写入消息行

        注意：此方法不自动提交事务，需由调用方管理事务。
        """
        cursor = await self._conn.execute(
            """
            INSERT INTO messages (message_id, conversation_key, sender_id, sender_name,
                                  receiver_id, receiver_name, content, message_type,
                                  is_read, is_deleted, created_at, client_token)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, 0, ?, ?)
            """,
            (
                message.message_id,
                message.conversation_key,
                message.sender_id,
                message.sender_name,
                message.receiver_id,
                message.receiver_name,
                message.content,
                message.message_type.value,
                message.created_at.isoformat(),
                message.client_token,
            ),
        )
        return cursor.lastrowid

    async def query(self, limit: int, offset: int = 0) -> list[Message]:
        """查询会话消息，按追加顺序正序返回，排除墓碑

        窗口从最新一条往前数：offset=0 返回最新的 limit 条。
        基于 offset 的分页在并发写入时不稳定（新消息会使窗口整体后移）。
        """
        async with storage_errors(self._conn, "query", self._key):
            cursor = await self._conn.execute(
                f"""
                SELECT {_MESSAGE_COLUMNS} FROM (
                    SELECT {_MESSAGE_COLUMNS} FROM messages
                    WHERE conversation_key = ? AND is_deleted = 0
                    ORDER BY seq DESC
                    LIMIT ? OFFSET ?
                ) ORDER BY seq ASC
                """,
                (self._key, limit, offset),
            )
            rows = await cursor.fetchall()
        return [row_to_message(row) for row in rows]

    async def get_message(self, message_id: str) -> Message | None:
        """查询本会话内的单条消息（包含墓碑，用于审计）"""
        async with storage_errors(self._conn, "get_message", self._key):
            cursor = await self._conn.execute(
                f"""
                SELECT {_MESSAGE_COLUMNS} FROM messages
                WHERE message_id = ? AND conversation_key = ?
                """,
                (message_id, self._key),
            )
            row = await cursor.fetchone()
        return row_to_message(row) if row else None

    async def latest(self) -> Message | None:
        """最新一条未删除消息"""
        async with storage_errors(self._conn, "latest", self._key):
            cursor = await self._conn.execute(
                f"""
                SELECT {_MESSAGE_COLUMNS} FROM messages
                WHERE conversation_key = ? AND is_deleted = 0
                ORDER BY seq DESC
                LIMIT 1
                """,
                (self._key,),
            )
            row = await cursor.fetchone()
        return row_to_message(row) if row else None

    async def count_unread(self, user_id: str) -> int:
        """发给 user_id 的未读且未删除消息数"""
        async with storage_errors(self._conn, "count_unread", self._key):
            cursor = await self._conn.execute(
                """
                SELECT COUNT(*) FROM messages
                WHERE conversation_key = ? AND receiver_id = ?
                  AND is_read = 0 AND is_deleted = 0
                """,
                (self._key, user_id),
            )
            row = await cursor.fetchone()
        return row[0] if row else 0

    async def mark_read(
        self,
        sender_id: str,
        receiver_id: str,
        read_at: datetime | None = None,
    ) -> int:
        """将 sender -> receiver 方向所有未读且未删除的消息标记为已读

        read_at 缺省为当前时间；调用方传入时，写入的时间戳与已读回执中的一致。

        Returns:
            本次被标记的消息数；立即重复调用返回 0
        """
        check_can_mark_read(sender_id, receiver_id)
        stamp = (read_at or datetime.now(UTC)).isoformat()
        async with self._write_lock:
            async with storage_errors(self._conn, "mark_read", self._key, rollback=True):
                cursor = await self._conn.execute(
                    """
                    UPDATE messages SET is_read = 1, read_at = ?
                    WHERE conversation_key = ? AND sender_id = ? AND receiver_id = ?
                      AND is_read = 0 AND is_deleted = 0
                    """,
                    (stamp, self._key, sender_id, receiver_id),
                )
                count = cursor.rowcount
                await self._conn.commit()
        return count

    async def edit(self, message_id: str, requestor_id: str, new_content: str) -> Message:
        """编辑消息内容（仅发送方），不改变 is_read

        Raises:
            NotFoundError: 消息不存在、已删除或不在本会话
            UnauthorizedError: requestor 不是发送方
        """
        content = validate_content(new_content)
        edited_at = datetime.now(UTC).isoformat()
        async with self._write_lock:
            async with storage_errors(self._conn, "edit", self._key, rollback=True):
                cursor = await self._conn.execute(
                    """
                    UPDATE messages SET content = ?, edited_at = ?
                    WHERE message_id = ? AND conversation_key = ?
                      AND sender_id = ? AND is_deleted = 0
                    """,
                    (content, edited_at, message_id, self._key, requestor_id),
                )
                updated = cursor.rowcount
                await self._conn.commit()
                message = await fetch_message(self._conn, message_id)
        if updated == 0:
            self._raise_mutation_failure(message, message_id, requestor_id, check_can_edit)
        return message

    async def delete(self, message_id: str, requestor_id: str) -> Message:
        """删除消息（仅发送方）：写入墓碑，记录保留用于审计

        Raises:
            NotFoundError: 消息不存在、已删除或不在本会话
            UnauthorizedError: requestor 不是发送方
        """
        deleted_at = datetime.now(UTC).isoformat()
        async with self._write_lock:
            async with storage_errors(self._conn, "delete", self._key, rollback=True):
                cursor = await self._conn.execute(
                    """
                    UPDATE messages SET is_deleted = 1, deleted_at = ?
                    WHERE message_id = ? AND conversation_key = ?
                      AND sender_id = ? AND is_deleted = 0
                    """,
                    (deleted_at, message_id, self._key, requestor_id),
                )
                updated = cursor.rowcount
                await self._conn.commit()
                message = await fetch_message(self._conn, message_id)
        if updated == 0:
            self._raise_mutation_failure(message, message_id, requestor_id, check_can_delete)
        return message

    def _raise_mutation_failure(
        self,
        message: Message | None,
        message_id: str,
        requestor_id: str,
        check: Callable[[Message | None, str, str], None],
    ) -> NoReturn:
        """条件 UPDATE 未命中时分类失败原因并抛出"""
        if message is not None and message.conversation_key == self._key:
            check(message, message_id, requestor_id)
        # 其他会话中的消息一律视为不存在，不向非参与者暴露其存在性
        raise NotFoundError(
            f"Message with id {message_id} does not exist in conversation {self._key}",
            code="MESSAGE_NOT_FOUND",
        )


class SqliteMessageStore:
    """所有会话分区的入口 -- 通过 for_key() 取得分区句柄"""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        index: SqliteConversationIndex,
        write_lock: asyncio.Lock,
        cache_size: int,
        cache_ttl_s: float | None = None,
    ) -> None:
        self._conn = conn
        self._index = index
        self._write_lock = write_lock
        self._handles: HandleCache[ConversationStore] = HandleCache(
            max_size=cache_size, ttl_s=cache_ttl_s
        )

    @property
    def handle_cache(self) -> HandleCache[ConversationStore]:
        return self._handles

    def for_key(self, conversation_key: str) -> ConversationStore:
        """取得会话分区句柄（key 格式非法时抛出 InvalidArgumentError）"""
        return self._handles.get_or_create(
            conversation_key,
            lambda: ConversationStore(
                self._conn, conversation_key, self._index, self._write_lock
            ),
        )

    def for_pair(self, user_a: str, user_b: str) -> ConversationStore:
        return self.for_key(derive_key(user_a, user_b))

    async def find_message(self, message_id: str) -> Message | None:
        """按 message_id 全局查询（包含墓碑）"""
        async with storage_errors(self._conn, "find_message"):
            return await fetch_message(self._conn, message_id)

    async def list_conversation_keys(self) -> list[tuple[str, str]]:
        """枚举所有存在消息的分区及其最后写入时间（用于重建会话索引）"""
        async with storage_errors(self._conn, "list_conversation_keys"):
            cursor = await self._conn.execute(
                """
                SELECT conversation_key, MAX(created_at) FROM messages
                GROUP BY conversation_key
                """
            )
            rows = await cursor.fetchall()
        return [(row[0], row[1]) for row in rows]
