"""会话句柄缓存 -- 有界 LRU + 空闲 TTL

进程内按会话 key 缓存 ConversationStore 句柄。容量达到上限时淘汰最久未使用的条目，
超过 ttl_s 未被访问的条目在下次访问时失效，缓存大小始终不超过 max_size。
单事件循环内使用，非线程安全。
"""

import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Generic, TypeVar

V = TypeVar("V")


class HandleCache(Generic[V]):
    """基于 OrderedDict 的 LRU 缓存，可选 TTL"""

    def __init__(
        self,
        max_size: int,
        ttl_s: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self._max_size = max_size
        self._ttl_s = ttl_s
        self._clock = clock
        # key -> (value, last_access)
        self._entries: OrderedDict[str, tuple[V, float]] = OrderedDict()
        self.evictions = 0

    @property
    def max_size(self) -> int:
        return self._max_size

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def _expired(self, last_access: float, now: float) -> bool:
        return self._ttl_s is not None and now - last_access > self._ttl_s

    def get(self, key: str) -> V | None:
        """读取并刷新访问时间；过期条目视为不存在"""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, last_access = entry
        now = self._clock()
        if self._expired(last_access, now):
            del self._entries[key]
            self.evictions += 1
            return None
        self._entries[key] = (value, now)
        self._entries.move_to_end(key)
        return value

    def put(self, key: str, value: V) -> None:
        """写入条目：先清理过期条目，再按需淘汰最久未使用的条目"""
        self.purge_expired()
        self._entries[key] = (value, self._clock())
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_size:
            self._entries.popitem(last=False)
            self.evictions += 1

    def get_or_create(self, key: str, factory: Callable[[], V]) -> V:
        value = self.get(key)
        if value is None:
            value = factory()
            self.put(key, value)
        return value

    def purge_expired(self) -> int:
        """主动清理所有过期条目，返回清理数量"""
        if self._ttl_s is None:
            return 0
        now = self._clock()
        expired = [k for k, (_, ts) in self._entries.items() if self._expired(ts, now)]
        for key in expired:
            del self._entries[key]
        self.evictions += len(expired)
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()
