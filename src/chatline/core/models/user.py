"""User Directory 模型 -- 外部身份系统的最小投影

私信核心只消费两样东西：经过认证的 user id，以及该用户的显示名称。
"""

from datetime import datetime

from pydantic import BaseModel, Field


class User(BaseModel):
    """用户目录条目"""

    user_id: str = Field(description="用户 ID")
    display_name: str = Field(description="显示名称")
    created_at: datetime = Field(description="登记时间")
