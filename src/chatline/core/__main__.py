"""CLI 入口模块 -- python -m chatline.core <command>

支持的命令：
  rebuild-index              从 messages 表重建会话索引
  add-user <user_id> <name>  在用户目录中登记用户
"""

import asyncio
import sys
from datetime import UTC, datetime

from .config import get_db_path


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print("用法: python -m chatline.core <command>")
        print("命令:")
        print("  rebuild-index              从 messages 表重建会话索引")
        print("  add-user <user_id> <name>  在用户目录中登记用户")
        sys.exit(1)

    command = sys.argv[1]

    if command == "rebuild-index":
        asyncio.run(rebuild_index())
    elif command == "add-user":
        if len(sys.argv) < 4:
            print("用法: python -m chatline.core add-user <user_id> <name>")
            sys.exit(1)
        asyncio.run(add_user(sys.argv[2], " ".join(sys.argv[3:])))
    else:
        print(f"未知命令: {command}")
        print("可用命令: rebuild-index, add-user")
        sys.exit(1)


async def rebuild_index() -> None:
    """执行会话索引重建"""
    from .registry import rebuild_conversation_index
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")
    print("开始重建会话索引...")

    store_group = await create_store_group(db_path)

    try:
        count = await rebuild_conversation_index(store_group)
        print(f"重建完成，共 {count} 个会话")
    finally:
        await store_group.conn.close()


async def add_user(user_id: str, display_name: str) -> None:
    """登记用户（外部身份系统的本地投影）"""
    from .models.conversation import validate_user_id
    from .models.user import User
    from .store import create_store_group

    validate_user_id(user_id)
    store_group = await create_store_group(get_db_path())

    try:
        await store_group.user_store.upsert_user(
            User(user_id=user_id, display_name=display_name, created_at=datetime.now(UTC))
        )
        await store_group.conn.commit()
        print(f"已登记用户: {user_id} ({display_name})")
    finally:
        await store_group.conn.close()


if __name__ == "__main__":
    main()
