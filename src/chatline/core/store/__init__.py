"""Chatline Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

import asyncio
from pathlib import Path

import aiosqlite

from ..config import HANDLE_CACHE_SIZE, HANDLE_CACHE_TTL_S
from .conversation_index import SqliteConversationIndex
from .conversation_store import ConversationStore, SqliteMessageStore
from .errors import storage_errors
from .handle_cache import HandleCache
from .sqlite_init import init_db
from .transaction import append_message_with_index
from .user_store import SqliteUserStore


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接与写锁

    所有写事务都在 write_lock 内执行，避免同一连接上交错的事务互相提交。
    """

    def __init__(
        self,
        conn: aiosqlite.Connection,
        cache_size: int = HANDLE_CACHE_SIZE,
        cache_ttl_s: float | None = HANDLE_CACHE_TTL_S,
    ) -> None:
        self.conn = conn
        self.write_lock = asyncio.Lock()
        self.conversation_index = SqliteConversationIndex(conn)
        self.user_store = SqliteUserStore(conn)
        self.message_store = SqliteMessageStore(
            conn,
            self.conversation_index,
            self.write_lock,
            cache_size=cache_size,
            cache_ttl_s=cache_ttl_s,
        )


async def create_store_group(
    db_path: str,
    cache_size: int = HANDLE_CACHE_SIZE,
    cache_ttl_s: float | None = HANDLE_CACHE_TTL_S,
) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径
        cache_size: 会话句柄缓存容量
        cache_ttl_s: 会话句柄空闲过期时间（秒），None 表示不过期

    Returns:
        StoreGroup 实例
    """
    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(conn=conn, cache_size=cache_size, cache_ttl_s=cache_ttl_s)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "ConversationStore",
    "SqliteMessageStore",
    "SqliteConversationIndex",
    "SqliteUserStore",
    "HandleCache",
    "init_db",
    "append_message_with_index",
    "storage_errors",
]
