"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、消息长度上限、分页大小、会话句柄缓存容量、推送队列大小等可配置常量。
"""

import os
from pathlib import Path


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("CHATLINE_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "CHATLINE_DB_PATH",
        str(_get_base_dir() / "sqlite" / "chatline.db"),
    )


def get_identity_header() -> str:
    """获取上游认证网关注入的身份请求头名称"""
    return os.environ.get("CHATLINE_IDENTITY_HEADER", "X-User-Id")


# 消息内容最大字符数（去除首尾空白后计算）
MESSAGE_MAX_LENGTH: int = int(os.environ.get("CHATLINE_MESSAGE_MAX_LENGTH", "1000"))

# 会话分页默认条数与上限
DEFAULT_PAGE_SIZE: int = int(os.environ.get("CHATLINE_DEFAULT_PAGE_SIZE", "50"))
MAX_PAGE_SIZE: int = int(os.environ.get("CHATLINE_MAX_PAGE_SIZE", "200"))

# 会话句柄缓存：容量上限 + 空闲过期时间（秒）
HANDLE_CACHE_SIZE: int = int(os.environ.get("CHATLINE_HANDLE_CACHE_SIZE", "1024"))
HANDLE_CACHE_TTL_S: float = float(
    os.environ.get("CHATLINE_HANDLE_CACHE_TTL_S", "600")
)

# 每个推送订阅队列的容量，队列满视为慢消费者并断开
PUSH_QUEUE_MAXSIZE: int = int(os.environ.get("CHATLINE_PUSH_QUEUE_MAXSIZE", "100"))

# SSE 心跳间隔（秒）
SSE_HEARTBEAT_INTERVAL: int = int(
    os.environ.get("CHATLINE_SSE_HEARTBEAT_INTERVAL", "15")
)
