"""消息生命周期规则

SENT -> READ 是主路径；DELETED 为终态；"已编辑" 是 SENT/READ 上的正交标记。
存储层用单条条件 UPDATE 原子执行这些规则，条件不满足时再调用这里的
check_* 函数对失败原因做分类（不存在 / 无权限）。
"""

from .exceptions import NotFoundError, UnauthorizedError, ValidationError
from .models.enums import EDITABLE_STATES, MessageState, validate_transition
from .models.message import Message


def _not_found(message_id: str) -> NotFoundError:
    return NotFoundError(
        f"Message with id {message_id} does not exist",
        code="MESSAGE_NOT_FOUND",
    )


def check_can_edit(message: Message | None, message_id: str, requestor_id: str) -> None:
    """编辑：仅发送方，且消息处于可编辑状态（未删除）

    Raises:
        NotFoundError: 消息不存在或已删除
        UnauthorizedError: requestor 不是发送方
    """
    if message is None or message.state not in EDITABLE_STATES:
        raise _not_found(message_id)
    if message.sender_id != requestor_id:
        raise UnauthorizedError(f"User {requestor_id} is not the sender of {message_id}")


def check_can_delete(
    message: Message | None, message_id: str, requestor_id: str
) -> None:
    """删除：与编辑相同的所有权检查，流转到终态 DELETED

    Raises:
        NotFoundError: 消息不存在或已删除
        UnauthorizedError: requestor 不是发送方
    """
    if message is None or not validate_transition(message.state, MessageState.DELETED):
        raise _not_found(message_id)
    if message.sender_id != requestor_id:
        raise UnauthorizedError(f"User {requestor_id} is not the sender of {message_id}")


def check_can_mark_read(sender_id: str, reader_id: str) -> None:
    """已读：只能由接收方对来自对方的消息执行

    Raises:
        ValidationError: 试图把自己发出的消息标记为已读
    """
    if sender_id == reader_id:
        raise ValidationError("Cannot mark your own messages as read")

