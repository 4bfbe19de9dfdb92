"""SQLite 数据库初始化

PRAGMA 配置 + 三张表 DDL + 索引创建。
所有会话共用一张 messages 表，以 conversation_key 列分区，
不为每一对用户单独建表。使用 aiosqlite 异步操作。
"""

import aiosqlite

# users 表 DDL（外部身份系统的显示名称投影）
_USERS_DDL = """
CREATE TABLE IF NOT EXISTS users (
    user_id       TEXT PRIMARY KEY,
    display_name  TEXT NOT NULL,
    created_at    TEXT NOT NULL
);
"""

# messages 表 DDL
_MESSAGES_DDL = """
CREATE TABLE IF NOT EXISTS messages (
    seq               INTEGER PRIMARY KEY AUTOINCREMENT,
    message_id        TEXT NOT NULL UNIQUE,
    conversation_key  TEXT NOT NULL,
    sender_id         TEXT NOT NULL,
    sender_name       TEXT NOT NULL,
    receiver_id       TEXT NOT NULL,
    receiver_name     TEXT NOT NULL,
    content           TEXT NOT NULL,
    message_type      TEXT NOT NULL DEFAULT 'text',
    is_read           INTEGER NOT NULL DEFAULT 0,
    read_at           TEXT,
    edited_at         TEXT,
    is_deleted        INTEGER NOT NULL DEFAULT 0,
    deleted_at        TEXT,
    created_at        TEXT NOT NULL,
    client_token      TEXT
);
"""

_MESSAGES_INDEXES = [
    # 会话内按追加顺序读取
    "CREATE INDEX IF NOT EXISTS idx_messages_key_seq ON messages(conversation_key, seq);",
    # 会话内按时间读取
    (
        "CREATE INDEX IF NOT EXISTS idx_messages_key_created "
        "ON messages(conversation_key, created_at);"
    ),
    # 未读计数
    (
        "CREATE INDEX IF NOT EXISTS idx_messages_unread "
        "ON messages(conversation_key, receiver_id, is_read, is_deleted);"
    ),
]

# conversation_index 表 DDL（按用户反规范化的会话成员索引）
_CONVERSATION_INDEX_DDL = """
CREATE TABLE IF NOT EXISTS conversation_index (
    user_id           TEXT NOT NULL,
    conversation_key  TEXT NOT NULL,
    other_user_id     TEXT NOT NULL,
    last_message_at   TEXT NOT NULL,

    PRIMARY KEY (user_id, conversation_key)
);
"""

_CONVERSATION_INDEX_INDEXES = [
    (
        "CREATE INDEX IF NOT EXISTS idx_conversation_index_recent "
        "ON conversation_index(user_id, last_message_at DESC);"
    ),
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    await conn.execute(_USERS_DDL)
    await conn.execute(_MESSAGES_DDL)
    await conn.execute(_CONVERSATION_INDEX_DDL)

    # 创建索引
    for idx_sql in _MESSAGES_INDEXES + _CONVERSATION_INDEX_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
