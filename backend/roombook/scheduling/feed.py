"""
数据变更通知
API写入与状态同步写入统一发布到同一个变更源，订阅方按日期过滤
"""
import asyncio
import itertools
import logging
import threading
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

ORIGIN_API = "api"
ORIGIN_RECONCILER = "reconciler"


@dataclass(frozen=True)
class ChangeEvent:
    """一行数据的变更"""
    table: str
    action: str  # insert / update / delete
    row_id: Optional[int] = None
    day: Optional[date] = None
    record: Optional[Dict[str, Any]] = field(default=None, compare=False)
    origin: str = ORIGIN_API


class Subscription:
    """
    一个订阅
    事件可以来自任意线程，通过 call_soon_threadsafe 投递到订阅方的事件循环
    """

    def __init__(self, feed: "ChangeFeed", key: int, day: Optional[date], tables, maxsize: int):
        self._feed = feed
        self.key = key
        self.day = day
        self.tables = frozenset(tables) if tables else None
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self.callback: Optional[Callable[[ChangeEvent], None]] = None
        self.closed = False

    def matches(self, event: ChangeEvent) -> bool:
        if self.tables is not None and event.table not in self.tables:
            return False
        # 删除事件通常不带日期，交给订阅方根据已知id判断
        if self.day is not None and event.day is not None and event.table == "bookings":
            return event.day == self.day
        return True

    def _put(self, event: ChangeEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("订阅 %s 的事件队列已满，丢弃事件 %s", self.key, event)

    def deliver(self, event: ChangeEvent) -> None:
        if self.closed:
            return
        if self.callback is not None:
            self.callback(event)
            return
        if self.loop is not None and not self.loop.is_closed():
            self.loop.call_soon_threadsafe(self._put, event)
        else:
            self._put(event)

    async def get(self, timeout: Optional[float] = None) -> Optional[ChangeEvent]:
        """等待下一个事件，超时返回None"""
        try:
            return await asyncio.wait_for(self.queue.get(), timeout)
        except asyncio.TimeoutError:
            return None

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._feed.unsubscribe(self)


class ChangeFeed:
    """进程内变更源"""

    def __init__(self, maxsize: int = 1000):
        self._lock = threading.Lock()
        self._subscriptions: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self._maxsize = maxsize

    def subscribe(self, day: Optional[date] = None, tables=None,
                  callback: Optional[Callable[[ChangeEvent], None]] = None) -> Subscription:
        """
        订阅变更
        提供callback时同步回调；否则事件进入队列，由 get() 读取
        """
        with self._lock:
            subscription = Subscription(self, next(self._ids), day, tables, self._maxsize)
            subscription.callback = callback
            if callback is None:
                try:
                    subscription.loop = asyncio.get_running_loop()
                except RuntimeError:
                    subscription.loop = None
            self._subscriptions[subscription.key] = subscription
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions.pop(subscription.key, None)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            targets = [s for s in self._subscriptions.values() if s.matches(event)]
        for subscription in targets:
            try:
                subscription.deliver(event)
            except Exception:
                logger.exception("投递变更事件失败: %s", event)


_default_feed = ChangeFeed()


def get_feed() -> ChangeFeed:
    return _default_feed
