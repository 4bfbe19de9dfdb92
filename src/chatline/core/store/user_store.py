"""UserStore SQLite 实现

外部身份系统在此登记 user id 与显示名称，私信核心只读取。
"""

from datetime import datetime

import aiosqlite

from ..exceptions import NotFoundError
from ..models.user import User
from .errors import storage_errors


class SqliteUserStore:
    """UserDirectory 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def upsert_user(self, user: User) -> None:
        """登记或更新用户显示名称

        注意：此方法不自动提交事务，需由调用方管理事务。
        """
        async with storage_errors(self._conn, "upsert_user"):
            await self._conn.execute(
                """
                INSERT INTO users (user_id, display_name, created_at)
                VALUES (?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET display_name = excluded.display_name
                """,
                (user.user_id, user.display_name, user.created_at.isoformat()),
            )

    async def get_user(self, user_id: str) -> User | None:
        """根据 user_id 查询用户"""
        async with storage_errors(self._conn, "get_user"):
            cursor = await self._conn.execute(
                "SELECT user_id, display_name, created_at FROM users WHERE user_id = ?",
                (user_id,),
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    async def get_display_name(self, user_id: str) -> str:
        """查询显示名称

        Raises:
            NotFoundError: 用户未登记
        """
        user = await self.get_user(user_id)
        if user is None:
            raise NotFoundError(
                f"User with id {user_id} does not exist",
                code="USER_NOT_FOUND",
            )
        return user.display_name

    async def list_users(self) -> list[User]:
        async with storage_errors(self._conn, "list_users"):
            cursor = await self._conn.execute(
                "SELECT user_id, display_name, created_at FROM users ORDER BY user_id"
            )
            rows = await cursor.fetchall()
        return [self._row_to_user(row) for row in rows]

    @staticmethod
    def _row_to_user(row: aiosqlite.Row) -> User:
        return User(
            user_id=row[0],
            display_name=row[1],
            created_at=datetime.fromisoformat(row[2]),
        )
