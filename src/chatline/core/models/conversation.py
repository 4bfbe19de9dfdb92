"""会话 key 推导 + ConversationSummary 派生模型

会话 key 由两个参与者 id 排序后拼接得到，与参数顺序无关：
    derive_key(a, b) == derive_key(b, a) == "dm:<较小 id>:<较大 id>"

user id 禁止包含分隔符，因此 key 可以无歧义地拆回两个参与者，
不同的参与者对不会产生相同的 key。
"""

from pydantic import BaseModel, Field

from ..exceptions import InvalidArgumentError
from .message import Message

KEY_PREFIX = "dm"
KEY_SEPARATOR = ":"


def validate_user_id(user_id: str, field: str = "user_id") -> str:
    """校验 user id 格式：非空且不含分隔符"""
    if not user_id or not user_id.strip():
        raise InvalidArgumentError(f"{field} 不能为空")
    if KEY_SEPARATOR in user_id:
        raise InvalidArgumentError(f"{field} 不能包含 '{KEY_SEPARATOR}': {user_id!r}")
    return user_id


def derive_key(user_a: str, user_b: str) -> str:
    """推导两个参与者的规范会话 key（与顺序无关）

    Raises:
        InvalidArgumentError: 任一 id 为空或包含分隔符
    """
    validate_user_id(user_a, "user_a")
    validate_user_id(user_b, "user_b")
    low, high = sorted((user_a, user_b))
    return KEY_SEPARATOR.join((KEY_PREFIX, low, high))


def decompose_key(key: str) -> tuple[str, str]:
    """将会话 key 拆回 (较小 id, 较大 id)

    Raises:
        InvalidArgumentError: key 格式非法
    """
    parts = key.split(KEY_SEPARATOR)
    if len(parts) != 3 or parts[0] != KEY_PREFIX or not parts[1] or not parts[2]:
        raise InvalidArgumentError(f"无法解析的会话 key: {key!r}")
    low, high = parts[1], parts[2]
    if low > high:
        raise InvalidArgumentError(f"会话 key 未按规范排序: {key!r}")
    return low, high


def is_participant(key: str, user_id: str) -> bool:
    """按拆分后的参与者精确匹配判断成员关系（不做子串匹配）"""
    try:
        low, high = decompose_key(key)
    except InvalidArgumentError:
        return False
    return user_id in (low, high)


def other_participant(key: str, user_id: str) -> str:
    """返回会话中的另一方参与者

    Raises:
        InvalidArgumentError: user_id 不是该会话的参与者
    """
    low, high = decompose_key(key)
    if user_id == low:
        return high
    if user_id == high:
        return low
    raise InvalidArgumentError(f"{user_id!r} 不是会话 {key!r} 的参与者")


class ConversationSummary(BaseModel):
    """会话摘要 -- 每次查询时重新计算，不做缓存"""

    conversation_key: str = Field(description="规范会话 key")
    other_user_id: str = Field(description="对方 user id")
    other_user_name: str = Field(description="对方显示名称")
    last_message: Message = Field(description="最新一条未删除消息")
    unread_count: int = Field(default=0, description="发给当前用户的未读消息数")
