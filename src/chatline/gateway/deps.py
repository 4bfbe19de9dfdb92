"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store、PushHub 与调用者身份

Store 实例通过 app.state 管理，在 lifespan 中初始化/清理。
调用者身份由上游认证网关注入请求头，本服务只信任该请求头，不接受请求体中的身份字段。
"""

from chatline.core.config import get_identity_header
from chatline.core.exceptions import AuthenticationError
from chatline.core.store import StoreGroup
from fastapi import Request

from .services.messaging_service import MessagingService
from .services.push_hub import PushHub


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_push_hub(request: Request) -> PushHub:
    """从 app.state 获取 PushHub 实例"""
    return request.app.state.push_hub


def get_messaging_service(request: Request) -> MessagingService:
    return MessagingService(request.app.state.store_group, request.app.state.push_hub)


def get_current_user_id(request: Request) -> str:
    """读取已认证的调用者身份

    Raises:
        AuthenticationError: 请求头缺失或为空
    """
    user_id = request.headers.get(get_identity_header(), "").strip()
    if not user_id:
        raise AuthenticationError("Missing authenticated user identity")
    return user_id
