"""TraceMiddleware -- 绑定会话参与者到日志上下文

caller_id 取自身份请求头；peer_id 取自 /api/messages/conversations/{other_user_id}
路径或 other_user_id 查询参数。两者都存在时同一请求的所有日志可按会话检索。
"""

import structlog
from chatline.core.config import get_identity_header
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

_CONVERSATIONS_SEGMENT = "conversations"


def extract_peer_id(request: Request) -> str | None:
    """从路径或查询参数中提取会话对方的 user id"""
    parts = [p for p in request.url.path.split("/") if p]
    if _CONVERSATIONS_SEGMENT in parts:
        i = parts.index(_CONVERSATIONS_SEGMENT)
        if i + 1 < len(parts):
            return parts[i + 1]
    return request.query_params.get("other_user_id")


class TraceMiddleware(BaseHTTPMiddleware):
    """会话级追踪中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        caller_id = request.headers.get(get_identity_header())
        if caller_id:
            structlog.contextvars.bind_contextvars(caller_id=caller_id)

        peer_id = extract_peer_id(request)
        if peer_id:
            structlog.contextvars.bind_contextvars(peer_id=peer_id)

        return await call_next(request)
