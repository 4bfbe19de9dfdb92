"""MessagingService -- 私信发送/查询/编辑/删除业务逻辑

每个操作的流程：
1. 字段校验（在任何存储访问之前）
2. 调用 ConversationStore 持久化
3. 持久化成功后向受影响的参与者推送事件

推送失败不会影响调用结果：发送方只知道消息已持久化，不知道是否已送达。
"""

from datetime import UTC, datetime

import structlog
from chatline.core.exceptions import NotFoundError, ValidationError
from chatline.core.models import (
    ConversationSummary,
    Message,
    MessageDeletedPayload,
    MessageEditedPayload,
    MessagesReadPayload,
    MessageType,
    NewMessagePayload,
    PushEvent,
    PushEventType,
    User,
    derive_key,
    validate_user_id,
)
from chatline.core.registry import ConversationRegistry
from chatline.core.store import StoreGroup
from chatline.core.validation import validate_content, validate_message_type, validate_page

from .push_hub import PushHub

log = structlog.get_logger()


class MessagingService:
    """私信业务服务"""

    def __init__(self, store_group: StoreGroup, push_hub: PushHub | None = None) -> None:
        self._stores = store_group
        self._push_hub = push_hub
        self._registry = ConversationRegistry.from_store_group(store_group)

    async def _require_user(self, user_id: str) -> User:
        """查询用户目录，未登记时抛出 NotFoundError"""
        user = await self._stores.user_store.get_user(user_id)
        if user is None:
            raise NotFoundError(
                f"User with id {user_id} does not exist",
                code="USER_NOT_FOUND",
            )
        return user

    async def _push(self, event: PushEvent) -> None:
        """fire-and-forget 推送，任何异常都不向调用方传播"""
        if self._push_hub is None:
            return
        try:
            await self._push_hub.publish(event)
        except Exception as e:
            log.warning(
                "push_failed",
                user_id=event.user_id,
                event_type=event.type.value,
                error_type=type(e).__name__,
            )

    async def send_message(
        self,
        sender_id: str,
        receiver_id: str,
        content: str,
        message_type: str | MessageType | None = None,
        client_token: str | None = None,
    ) -> Message:
        """发送消息：持久化后推送 new-message 给接收方

        Raises:
            ValidationError: 字段缺失、超长、类型非法或给自己发消息
            NotFoundError: 发送方或接收方未登记
        """
        validate_user_id(sender_id, "sender_id")
        validate_user_id(receiver_id, "receiver_id")
        if sender_id == receiver_id:
            raise ValidationError("Cannot send a message to yourself")
        normalized = validate_content(content)
        msg_type = validate_message_type(message_type)

        sender = await self._require_user(sender_id)
        receiver = await self._require_user(receiver_id)

        conversation = self._stores.message_store.for_key(derive_key(sender_id, receiver_id))
        message = await conversation.append(
            sender_id=sender.user_id,
            sender_name=sender.display_name,
            receiver_id=receiver.user_id,
            receiver_name=receiver.display_name,
            content=normalized,
            message_type=msg_type,
            client_token=client_token,
        )
        await log.ainfo(
            "message_sent",
            message_id=message.message_id,
            conversation_key=message.conversation_key,
            content_length=len(message.content),
        )

        await self._push(
            PushEvent(
                type=PushEventType.NEW_MESSAGE,
                user_id=receiver_id,
                payload=NewMessagePayload(
                    message=message.to_payload(),
                    client_token=client_token,
                ).model_dump(mode="json"),
            )
        )
        return message

    async def get_conversation(
        self,
        viewer_id: str,
        other_user_id: str,
        limit: int,
        offset: int = 0,
    ) -> tuple[User, list[Message], int]:
        """加载会话：返回窗口内消息，并把对方发给 viewer 的未读消息标记为已读

        Returns:
            (对方用户, 消息列表（正序）, 本次标记为已读的条数)
        """
        validate_user_id(viewer_id, "viewer_id")
        validate_user_id(other_user_id, "other_user_id")
        validate_page(limit, offset)

        other_user = await self._require_user(other_user_id)
        conversation = self._stores.message_store.for_key(
            derive_key(viewer_id, other_user_id)
        )
        messages = await conversation.query(limit, offset)

        marked = 0
        if viewer_id != other_user_id:
            marked = await self._mark_read(viewer_id, other_user_id)
        return other_user, messages, marked

    async def mark_conversation_read(self, reader_id: str, other_user_id: str) -> int:
        """显式标记 other_user 发给 reader 的消息为已读"""
        validate_user_id(reader_id, "reader_id")
        validate_user_id(other_user_id, "other_user_id")
        if reader_id == other_user_id:
            raise ValidationError("Cannot mark your own messages as read")
        await self._require_user(other_user_id)
        return await self._mark_read(reader_id, other_user_id)

    async def _mark_read(self, reader_id: str, sender_id: str) -> int:
        """SENT -> READ，受影响条数大于 0 时向原发送方推送已读回执"""
        conversation = self._stores.message_store.for_key(derive_key(reader_id, sender_id))
        read_at = datetime.now(UTC)
        count = await conversation.mark_read(
            sender_id=sender_id, receiver_id=reader_id, read_at=read_at
        )
        if count == 0:
            return 0

        reader = await self._stores.user_store.get_user(reader_id)
        payload = MessagesReadPayload(
            reader_id=reader_id,
            reader_name=reader.display_name if reader else reader_id,
            conversation_key=conversation.key,
            message_count=count,
            read_at=read_at,
        )
        await self._push(
            PushEvent(
                type=PushEventType.MESSAGES_READ,
                user_id=sender_id,
                payload=payload.model_dump(mode="json"),
            )
        )
        return count

    async def edit_message(
        self,
        message_id: str,
        editor_id: str,
        other_user_id: str,
        new_content: str,
    ) -> Message:
        """编辑消息：仅发送方；成功后推送 message-edited 给对方

        Raises:
            ValidationError: 内容为空或超长
            NotFoundError: 消息不存在或已删除
            UnauthorizedError: editor 不是发送方
        """
        validate_user_id(editor_id, "editor_id")
        validate_user_id(other_user_id, "other_user_id")
        content = validate_content(new_content)

        conversation = self._stores.message_store.for_key(derive_key(editor_id, other_user_id))
        message = await conversation.edit(message_id, editor_id, content)
        await log.ainfo(
            "message_edited",
            message_id=message_id,
            conversation_key=conversation.key,
        )

        await self._push(
            PushEvent(
                type=PushEventType.MESSAGE_EDITED,
                user_id=other_user_id,
                payload=MessageEditedPayload(
                    message_id=message.message_id,
                    conversation_key=message.conversation_key,
                    sender_id=message.sender_id,
                    new_content=message.content,
                    edited_at=message.edited_at,
                ).model_dump(mode="json"),
            )
        )
        return message

    async def delete_message(
        self,
        message_id: str,
        requestor_id: str,
        other_user_id: str,
    ) -> Message:
        """删除消息（墓碑）：仅发送方；成功后推送 message-deleted 给对方"""
        validate_user_id(requestor_id, "requestor_id")
        validate_user_id(other_user_id, "other_user_id")

        conversation = self._stores.message_store.for_key(
            derive_key(requestor_id, other_user_id)
        )
        message = await conversation.delete(message_id, requestor_id)
        await log.ainfo(
            "message_deleted",
            message_id=message_id,
            conversation_key=conversation.key,
        )

        await self._push(
            PushEvent(
                type=PushEventType.MESSAGE_DELETED,
                user_id=other_user_id,
                payload=MessageDeletedPayload(
                    message_id=message.message_id,
                    conversation_key=message.conversation_key,
                    sender_id=message.sender_id,
                ).model_dump(mode="json"),
            )
        )
        return message

    async def list_conversations(self, user_id: str) -> list[ConversationSummary]:
        validate_user_id(user_id)
        return await self._registry.get_summaries(user_id)

    async def get_unread_count(self, user_id: str) -> int:
        validate_user_id(user_id)
        return await self._registry.get_total_unread(user_id)

    async def get_stats(self, user_id: str) -> dict:
        validate_user_id(user_id)
        return await self._registry.get_stats(user_id)
