"""Chatline Client -- 私信 API 客户端与会话视图

公开接口导出。
"""

from .api_client import MessagingClient
from .exceptions import ClientError, SendFailedError
from .view import ConversationView, LocalMessage

__all__ = [
    "MessagingClient",
    "ConversationView",
    "LocalMessage",
    "ClientError",
    "SendFailedError",
]
