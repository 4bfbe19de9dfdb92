"""SSE 推送路由

GET /api/stream/messages: 订阅调用者本人的推送频道。
频道由已认证身份决定，不接受客户端传入的频道 id；15 秒心跳保活。
断线期间的事件不补发，客户端重连后重新加载会话。
"""

import asyncio
import json
from collections.abc import AsyncIterator

import structlog
from chatline.core.config import SSE_HEARTBEAT_INTERVAL
from chatline.core.models.event import PushEvent
from fastapi import APIRouter, Depends, Request
from sse_starlette.sse import EventSourceResponse

from ..deps import get_current_user_id, get_push_hub
from ..services.push_hub import CHANNEL_CLOSED, PushHub

log = structlog.get_logger()

router = APIRouter()


def _event_to_sse(event: PushEvent) -> dict:
    return {
        "id": event.event_id,
        "event": event.type.value,
        "data": json.dumps(event.to_sse_data(), ensure_ascii=False),
    }


async def channel_events(
    request: Request,
    push_hub: PushHub,
    user_id: str,
    queue: asyncio.Queue,
    heartbeat_s: float = SSE_HEARTBEAT_INTERVAL,
) -> AsyncIterator[dict]:
    """把订阅队列转换为 SSE 事件

    连接断开或频道被 PushHub 关闭（慢消费者）时结束，并取消订阅。
    """
    try:
        while True:
            if await request.is_disconnected():
                return
            try:
                event = await asyncio.wait_for(queue.get(), timeout=heartbeat_s)
            except TimeoutError:
                yield {"comment": "heartbeat"}
                continue
            if event is CHANNEL_CLOSED:
                await log.awarning("push_channel_evicted", user_id=user_id)
                return
            yield _event_to_sse(event)
    finally:
        await push_hub.unsubscribe(user_id, queue)
        await log.ainfo("push_channel_closed", user_id=user_id)


@router.get("/api/stream/messages")
async def stream_messages(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    push_hub: PushHub = Depends(get_push_hub),
):
    """SSE 事件流端点

    1. 以调用者身份注册到 PushHub
    2. 实时推送新事件
    3. 超时无事件时发送心跳注释
    4. 连接断开或频道被关闭时取消订阅
    """
    queue = await push_hub.subscribe(user_id)
    await log.ainfo("push_channel_opened", user_id=user_id)
    return EventSourceResponse(channel_events(request, push_hub, user_id, queue))
