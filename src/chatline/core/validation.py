"""请求字段校验 -- 在任何存储访问之前执行"""

from .config import MAX_PAGE_SIZE, MESSAGE_MAX_LENGTH
from .exceptions import ValidationError
from .models.enums import MessageType


def validate_content(content: str | None) -> str:
    """去除首尾空白并校验长度，返回规范化后的内容"""
    if content is None:
        raise ValidationError("content is required")
    normalized = content.strip()
    if not normalized:
        raise ValidationError("content must not be empty")
    if len(normalized) > MESSAGE_MAX_LENGTH:
        raise ValidationError(
            f"content exceeds {MESSAGE_MAX_LENGTH} characters ({len(normalized)})"
        )
    return normalized


def validate_message_type(message_type: str | MessageType | None) -> MessageType:
    if message_type is None:
        return MessageType.TEXT
    try:
        return MessageType(message_type)
    except ValueError:
        allowed = ", ".join(t.value for t in MessageType)
        raise ValidationError(
            f"message_type must be one of: {allowed} (got {message_type!r})"
        ) from None


def validate_page(limit: int, offset: int) -> tuple[int, int]:
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    if offset < 0:
        raise ValidationError("offset must be >= 0")
    return limit, offset
