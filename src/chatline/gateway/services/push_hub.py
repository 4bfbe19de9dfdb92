"""PushHub -- 内存中按用户划分的推送频道

每个用户一个逻辑频道；同一用户的每个连接（例如多个浏览器标签页）持有一个 asyncio.Queue。
发布是 fire-and-forget：用户不在线时事件直接丢弃，不重试、不落盘，
客户端在下次加载会话时追上最新状态。队列写满的连接被移出频道并收到 CHANNEL_CLOSED，
连接随之结束，客户端重连后重新加载。只在单进程内有效。
"""

import asyncio
from collections import defaultdict

import structlog
from chatline.core.config import PUSH_QUEUE_MAXSIZE
from chatline.core.models.event import PushEvent

log = structlog.get_logger()

# 慢消费者被移出订阅集合后，队列中只留下这个标记，持有方据此结束连接
CHANNEL_CLOSED = object()


class PushHub:
    """按 user_id 路由的发布/订阅器 -- 基于 asyncio.Queue"""

    def __init__(self, queue_maxsize: int = PUSH_QUEUE_MAXSIZE) -> None:
        # user_id -> set of asyncio.Queue
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)
        self._queue_maxsize = queue_maxsize

    async def subscribe(self, user_id: str) -> asyncio.Queue:
        """订阅 user_id 的个人频道

        调用方必须传入连接建立时已认证的身份，而不是客户端提交的任意 id。

        Returns:
            asyncio.Queue 实例，新事件会被推送到此队列
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_maxsize)
        self._subscribers[user_id].add(queue)
        return queue

    async def unsubscribe(self, user_id: str, queue: asyncio.Queue) -> None:
        """取消订阅"""
        self._subscribers[user_id].discard(queue)
        if not self._subscribers[user_id]:
            del self._subscribers[user_id]

    def is_online(self, user_id: str) -> bool:
        return bool(self._subscribers.get(user_id))

    def subscriber_count(self, user_id: str) -> int:
        return len(self._subscribers.get(user_id, ()))

    async def publish(self, event: PushEvent) -> int:
        """向 event.user_id 的所有连接推送事件

        Returns:
            成功入队的连接数；0 表示事件已被丢弃
        """
        user_id = event.user_id
        queues = self._subscribers.get(user_id)
        if not queues:
            log.debug(
                "push_dropped_offline",
                user_id=user_id,
                event_type=event.type.value,
            )
            return 0

        delivered = 0
        dead_queues = []
        for queue in queues:
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                dead_queues.append(queue)

        # 清理已满的队列（慢消费者）
        for q in dead_queues:
            self._subscribers[user_id].discard(q)
            _close_queue(q)
            log.warning("push_queue_full_dropped", user_id=user_id)
        if user_id in self._subscribers and not self._subscribers[user_id]:
            del self._subscribers[user_id]

        return delivered


def _close_queue(queue: asyncio.Queue) -> None:
    """丢弃积压事件并放入 CHANNEL_CLOSED，让连接结束后由客户端重连补齐"""
    while not queue.empty():
        queue.get_nowait()
    queue.put_nowait(CHANNEL_CLOSED)
