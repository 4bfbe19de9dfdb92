"""存储层异常转换

所有 SQLite 访问都在 storage_errors() 内执行：aiosqlite 异常被记录并转换为 StorageError，
上层只需处理 MessagingError 体系。
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiosqlite
import structlog

from ..exceptions import StorageError

log = structlog.get_logger()


@asynccontextmanager
async def storage_errors(
    conn: aiosqlite.Connection,
    operation: str,
    conversation_key: str | None = None,
    rollback: bool = False,
) -> AsyncIterator[None]:
    """把 aiosqlite 异常转换为 StorageError，写操作失败时回滚"""
    try:
        yield
    except aiosqlite.Error as e:
        if rollback:
            await conn.rollback()
        await log.aerror(
            "storage_operation_failed",
            operation=operation,
            conversation_key=conversation_key,
            error_type=type(e).__name__,
            error=str(e),
        )
        raise StorageError(operation, e) from e
