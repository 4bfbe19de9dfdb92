"""枚举定义

包含 MessageState 生命周期状态机、MessageType、PushEventType 枚举，
以及 VALID_TRANSITIONS 合法流转映射和 TERMINAL_STATES 终态集合。
"""

from enum import StrEnum


class MessageState(StrEnum):
    """消息生命周期状态

    "已编辑" 不是独立状态，而是 SENT/READ 上的正交标记（edited_at）。
    "已送达" 属于实时推送层的概念，不在持久化状态中体现。
    """

    SENT = "SENT"
    READ = "READ"
    DELETED = "DELETED"


# 合法状态流转；任何流转都不可逆
VALID_TRANSITIONS: dict[MessageState, set[MessageState]] = {
    MessageState.SENT: {MessageState.READ, MessageState.DELETED},
    MessageState.READ: {MessageState.DELETED},
    # 终态不可再流转
    MessageState.DELETED: set(),
}

TERMINAL_STATES: set[MessageState] = {MessageState.DELETED}

# 允许附加 "已编辑" 标记的状态
EDITABLE_STATES: set[MessageState] = {MessageState.SENT, MessageState.READ}


class MessageType(StrEnum):
    """消息内容类型"""

    TEXT = "text"
    IMAGE = "image"
    FILE = "file"


class PushEventType(StrEnum):
    """推送事件类型（与客户端约定的事件名）"""

    NEW_MESSAGE = "new-message"
    MESSAGE_EDITED = "message-edited"
    MESSAGE_DELETED = "message-deleted"
    MESSAGES_READ = "messages-read"


def validate_transition(from_state: MessageState, to_state: MessageState) -> bool:
    """验证状态流转是否合法

    Args:
        from_state: 当前状态
        to_state: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_state, set())
    return to_state in allowed
