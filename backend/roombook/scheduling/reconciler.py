"""
预约状态同步
根据当前时间（Clock）批量修正预约状态：
    Active  -> Overdue   当天、已过结束时间
    Overdue -> Active    当天、结束时间又在当前时间之后（时钟回拨或延长）
    Reserved -> Active   仅在开启 auto_activate 时，当天、已到开始时间且未结束
写入失败只记录日志，下一个周期重试
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from roombook.db.store import BookingStore
from roombook.errors import StoreError
from roombook.scheduling.clock import Clock
from roombook.scheduling.feed import ORIGIN_RECONCILER, ChangeFeed
from roombook.scheduling.states import BookingState

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    now: Optional[datetime] = None
    overdue: list = field(default_factory=list)
    reactivated: list = field(default_factory=list)
    activated: list = field(default_factory=list)
    failed: bool = False

    @property
    def changed(self) -> list:
        return self.overdue + self.reactivated + self.activated

    def __bool__(self) -> bool:
        return bool(self.changed)


class StatusReconciler:
    """状态同步器，可被多个客户端 / 定时任务同时调用，不假设独占"""

    def __init__(self, clock: Clock, auto_activate: bool = False):
        self.clock = clock
        self.auto_activate = auto_activate

    def reconcile(self, store: BookingStore, now: Optional[datetime] = None) -> ReconcileResult:
        """执行一次同步（异常向上抛出）"""
        now = now or self.clock.now()
        today, clock_time = now.date(), now.time()
        result = ReconcileResult(now=now)
        result.overdue = store.transition_states(
            BookingState.ACTIVE, BookingState.OVERDUE, today, end_before=clock_time,
        )
        result.reactivated = store.transition_states(
            BookingState.OVERDUE, BookingState.ACTIVE, today, end_after=clock_time,
        )
        if self.auto_activate:
            result.activated = store.transition_states(
                BookingState.RESERVED, BookingState.ACTIVE, today,
                start_at_or_before=clock_time, end_after=clock_time,
            )
        if result:
            logger.info(
                "状态同步 %s: 超时 %d 条，恢复 %d 条，自动开始 %d 条",
                now.strftime("%Y-%m-%d %H:%M"), len(result.overdue), len(result.reactivated), len(result.activated),
            )
        return result

    def reconcile_safely(self, store: BookingStore, now: Optional[datetime] = None) -> ReconcileResult:
        """执行一次同步，失败只记录日志"""
        try:
            return self.reconcile(store, now)
        except (SQLAlchemyError, StoreError) as e:
            store.db.rollback()
            logger.error("状态同步失败，下个周期重试: %s", e)
            return ReconcileResult(now=now, failed=True)


def run_once(session_factory: Callable, reconciler: StatusReconciler, feed: Optional[ChangeFeed]) -> ReconcileResult:
    """用独立会话执行一次同步"""
    db = session_factory()
    try:
        store = BookingStore(db, feed=feed, origin=ORIGIN_RECONCILER)
        return reconciler.reconcile_safely(store)
    finally:
        db.close()


async def run_periodically(
    session_factory: Callable,
    reconciler: StatusReconciler,
    feed: Optional[ChangeFeed],
    interval: float,
    stop: asyncio.Event,
) -> None:
    """后台定时同步，直到stop被设置"""
    logger.info("状态同步任务启动，间隔 %.0f 秒", interval)
    while not stop.is_set():
        try:
            await run_in_threadpool(run_once, session_factory, reconciler, feed)
        except Exception:
            logger.exception("状态同步任务异常")
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass
    logger.info("状态同步任务停止")
