"""Chatline Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .conversation import (
    ConversationSummary,
    decompose_key,
    derive_key,
    is_participant,
    other_participant,
    validate_user_id,
)
from .enums import (
    EDITABLE_STATES,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    MessageState,
    MessageType,
    PushEventType,
    validate_transition,
)
from .event import PushEvent
from .message import Message
from .payloads import (
    MessageDeletedPayload,
    MessageEditedPayload,
    MessagesReadPayload,
    NewMessagePayload,
)
from .user import User

__all__ = [
    # 枚举
    "MessageState",
    "MessageType",
    "PushEventType",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "EDITABLE_STATES",
    "validate_transition",
    # 会话 key
    "derive_key",
    "decompose_key",
    "is_participant",
    "other_participant",
    "validate_user_id",
    # Message
    "Message",
    "ConversationSummary",
    # User
    "User",
    # Push
    "PushEvent",
    "NewMessagePayload",
    "MessageEditedPayload",
    "MessageDeletedPayload",
    "MessagesReadPayload",
]
