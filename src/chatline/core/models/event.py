"""PushEvent Domain Model

推送事件只在内存中流转（PushHub -> SSE），不落盘。
event_id 使用 ULID 格式，同时用作 SSE 的 id 字段。
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field
from ulid import ULID

from .enums import PushEventType


class PushEvent(BaseModel):
    """推送事件 -- 投递到 user_id 对应的个人频道"""

    event_id: str = Field(
        default_factory=lambda: str(ULID()),
        description="唯一标识，ULID 格式",
    )
    type: PushEventType = Field(description="事件类型")
    user_id: str = Field(description="目标频道（接收事件的用户）")
    ts: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="事件时间戳",
    )
    payload: dict[str, Any] = Field(default_factory=dict, description="结构化 payload")

    def to_sse_data(self) -> dict[str, Any]:
        """转换为 SSE data JSON"""
        return {
            "event_id": self.event_id,
            "type": self.type.value,
            "user_id": self.user_id,
            "ts": self.ts.isoformat(),
            "payload": self.payload,
        }
