"""私信路由

POST   /api/messages                                  发送消息
GET    /api/messages/conversations                    会话列表
GET    /api/messages/conversations/{other_user_id}    加载会话（同时标记已读）
PUT    /api/messages/conversations/{other_user_id}/read  显式标记已读
GET    /api/messages/unread-count                     未读总数
GET    /api/messages/stats                            会话统计
PUT    /api/messages/{message_id}                     编辑消息
DELETE /api/messages/{message_id}                     删除消息

调用者身份一律来自 get_current_user_id；MessagingError 由应用级处理器转换为错误响应体。
"""

from chatline.core.config import DEFAULT_PAGE_SIZE
from chatline.core.models import ConversationSummary, Message
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse

from ..deps import get_current_user_id, get_messaging_service
from ..services.messaging_service import MessagingService

router = APIRouter(prefix="/api/messages")


class SendMessageRequest(BaseModel):
    """发送消息请求体"""

    receiver_id: str = Field(description="接收方 user id")
    content: str = Field(description="消息内容，去除首尾空白后 1..MESSAGE_MAX_LENGTH 字符")
    message_type: str | None = Field(default=None, description="text / image / file，缺省为 text")
    client_token: str | None = Field(
        default=None,
        description="客户端关联令牌，原样回传用于乐观更新对账，服务端不据此去重",
    )


class EditMessageRequest(BaseModel):
    """编辑消息请求体"""

    content: str = Field(description="新的消息内容")
    other_user_id: str = Field(description="会话中的另一方，用于定位会话分区")


def _summary_to_dict(summary: ConversationSummary) -> dict:
    data = summary.model_dump(mode="json", exclude={"last_message"})
    data["last_message"] = summary.last_message.to_payload()
    return data


def _messages_to_list(messages: list[Message]) -> list[dict]:
    return [m.to_payload() for m in messages]


@router.post("")
async def send_message(
    body: SendMessageRequest,
    user_id: str = Depends(get_current_user_id),
    service: MessagingService = Depends(get_messaging_service),
):
    """发送消息 -- 成功返回 201，推送结果不影响响应"""
    message = await service.send_message(
        sender_id=user_id,
        receiver_id=body.receiver_id,
        content=body.content,
        message_type=body.message_type,
        client_token=body.client_token,
    )
    return JSONResponse(status_code=201, content={"message": message.to_payload()})


@router.get("/conversations")
async def list_conversations(
    user_id: str = Depends(get_current_user_id),
    service: MessagingService = Depends(get_messaging_service),
):
    """会话列表，按最新消息时间倒序"""
    summaries = await service.list_conversations(user_id)
    return {
        "conversations": [_summary_to_dict(s) for s in summaries],
        "total": len(summaries),
    }


@router.get("/conversations/{other_user_id}")
async def get_conversation(
    other_user_id: str,
    limit: int = Query(default=DEFAULT_PAGE_SIZE, description="返回条数"),
    offset: int = Query(default=0, description="从最新一条往前跳过的条数"),
    user_id: str = Depends(get_current_user_id),
    service: MessagingService = Depends(get_messaging_service),
):
    other_user, messages, marked = await service.get_conversation(
        viewer_id=user_id,
        other_user_id=other_user_id,
        limit=limit,
        offset=offset,
    )
    return {
        "messages": _messages_to_list(messages),
        "other_user": {
            "user_id": other_user.user_id,
            "display_name": other_user.display_name,
        },
        "total": len(messages),
        "marked_read": marked,
    }


@router.put("/conversations/{other_user_id}/read")
async def mark_conversation_read(
    other_user_id: str,
    user_id: str = Depends(get_current_user_id),
    service: MessagingService = Depends(get_messaging_service),
):
    modified = await service.mark_conversation_read(user_id, other_user_id)
    return {"modified_count": modified}


@router.get("/unread-count")
async def get_unread_count(
    user_id: str = Depends(get_current_user_id),
    service: MessagingService = Depends(get_messaging_service),
):
    return {"unread_count": await service.get_unread_count(user_id)}


@router.get("/stats")
async def get_stats(
    user_id: str = Depends(get_current_user_id),
    service: MessagingService = Depends(get_messaging_service),
):
    return {"stats": await service.get_stats(user_id)}


@router.put("/{message_id}")
async def edit_message(
    message_id: str,
    body: EditMessageRequest,
    user_id: str = Depends(get_current_user_id),
    service: MessagingService = Depends(get_messaging_service),
):
    """编辑消息 -- 仅发送方，已删除的消息返回 404"""
    message = await service.edit_message(
        message_id=message_id,
        editor_id=user_id,
        other_user_id=body.other_user_id,
        new_content=body.content,
    )
    return {"message": message.to_payload()}


@router.delete("/{message_id}")
async def delete_message(
    message_id: str,
    other_user_id: str = Query(description="会话中的另一方"),
    user_id: str = Depends(get_current_user_id),
    service: MessagingService = Depends(get_messaging_service),
):
    """删除消息 -- 仅发送方，写入墓碑"""
    message = await service.delete_message(
        message_id=message_id,
        requestor_id=user_id,
        other_user_id=other_user_id,
    )
    return {"message_id": message.message_id, "deleted": True}
