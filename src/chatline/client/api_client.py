"""MessagingClient -- 私信 HTTP API 的 httpx 异步封装

send() 负责乐观更新流程：本地插入 -> POST -> 用响应确认，失败时回滚并抛出 SendFailedError。
events() 连接 SSE 推送频道并逐个产出 PushEvent。
"""

import json
from collections.abc import AsyncIterator
from typing import Any

import httpx
import structlog
from chatline.core.config import DEFAULT_PAGE_SIZE, get_identity_header
from chatline.core.models import MessageType, PushEvent

from .exceptions import ClientError, SendFailedError
from .view import ConversationView, LocalMessage

log = structlog.get_logger()

# 默认请求超时（秒）；SSE 连接不设读取超时
DEFAULT_TIMEOUT_S = 10


def _raise_for_error(response: httpx.Response) -> None:
    """非 2xx 响应转换为 ClientError"""
    if response.is_success:
        return
    code = "HTTP_ERROR"
    message = response.reason_phrase
    try:
        error = response.json().get("error") or {}
        code = error.get("code", code)
        message = error.get("message", message)
    except (ValueError, AttributeError):
        pass
    raise ClientError(response.status_code, code, message)


class MessagingClient:
    """私信 API 客户端

    user_id 通过身份请求头发送；生产环境中该请求头由上游认证网关注入，
    此处直连仅用于测试与内部工具。
    """

    def __init__(
        self,
        base_url: str,
        user_id: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        """
        Args:
            base_url: Gateway 基础 URL
            user_id: 调用者身份
            transport: 自定义传输层（测试时传入 ASGITransport / MockTransport）
            timeout_s: 普通请求超时（秒）
        """
        self.user_id = user_id
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={get_identity_header(): user_id},
            transport=transport,
            timeout=timeout_s,
        )

    async def __aenter__(self) -> "MessagingClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def open_view(self, other_user_id: str) -> ConversationView:
        return ConversationView(self.user_id, other_user_id)

    async def send(
        self,
        view: ConversationView,
        content: str,
        message_type: MessageType = MessageType.TEXT,
    ) -> LocalMessage:
        """乐观发送

        Raises:
            SendFailedError: 请求失败；乐观条目已回滚
        """
        entry = view.add_optimistic(content, message_type)
        try:
            response = await self._http.post(
                "/api/messages",
                json={
                    "receiver_id": view.other_id,
                    "content": content,
                    "message_type": message_type.value,
                    "client_token": entry.client_token,
                },
            )
            _raise_for_error(response)
        except ClientError as e:
            view.rollback(entry.local_id)
            await log.awarning("send_rolled_back", local_id=entry.local_id, code=e.code)
            raise SendFailedError(entry.local_id, e.status_code, e.code, e.message) from e
        except httpx.HTTPError as e:
            view.rollback(entry.local_id)
            await log.awarning(
                "send_rolled_back",
                local_id=entry.local_id,
                error_type=type(e).__name__,
            )
            raise SendFailedError(entry.local_id, 0, "TRANSPORT_ERROR", str(e)) from e

        return view.confirm(response.json()["message"])

    async def load_conversation(
        self,
        view: ConversationView,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> dict[str, Any]:
        """加载会话窗口并刷新视图；服务端同时将对方的消息标记为已读"""
        response = await self._http.get(
            f"/api/messages/conversations/{view.other_id}",
            params={"limit": limit, "offset": offset},
        )
        _raise_for_error(response)
        data = response.json()
        view.load(data["messages"])
        return data

    async def mark_read(self, other_user_id: str) -> int:
        response = await self._http.put(f"/api/messages/conversations/{other_user_id}/read")
        _raise_for_error(response)
        return response.json()["modified_count"]

    async def edit(self, message_id: str, other_user_id: str, content: str) -> dict[str, Any]:
        response = await self._http.put(
            f"/api/messages/{message_id}",
            json={"content": content, "other_user_id": other_user_id},
        )
        _raise_for_error(response)
        return response.json()["message"]

    async def delete(self, message_id: str, other_user_id: str) -> bool:
        response = await self._http.delete(
            f"/api/messages/{message_id}",
            params={"other_user_id": other_user_id},
        )
        _raise_for_error(response)
        return response.json()["deleted"]

    async def list_conversations(self) -> list[dict[str, Any]]:
        response = await self._http.get("/api/messages/conversations")
        _raise_for_error(response)
        return response.json()["conversations"]

    async def unread_count(self) -> int:
        response = await self._http.get("/api/messages/unread-count")
        _raise_for_error(response)
        return response.json()["unread_count"]

    async def stats(self) -> dict[str, Any]:
        response = await self._http.get("/api/messages/stats")
        _raise_for_error(response)
        return response.json()["stats"]

    async def events(self) -> AsyncIterator[PushEvent]:
        """订阅本人推送频道，逐个产出 PushEvent

        连接关闭时迭代结束；心跳注释行被忽略。
        """
        async with self._http.stream(
            "GET",
            "/api/stream/messages",
            headers={"Accept": "text/event-stream"},
            timeout=httpx.Timeout(DEFAULT_TIMEOUT_S, read=None),
        ) as response:
            if not response.is_success:
                await response.aread()
                _raise_for_error(response)

            data_lines: list[str] = []
            async for line in response.aiter_lines():
                if not line:
                    if data_lines:
                        yield PushEvent.model_validate(json.loads("\n".join(data_lines)))
                        data_lines = []
                    continue
                if line.startswith(":"):
                    continue
                field, _, value = line.partition(":")
                if field == "data":
                    data_lines.append(value.removeprefix(" "))
            if data_lines:
                yield PushEvent.model_validate(json.loads("\n".join(data_lines)))
