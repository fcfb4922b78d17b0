"""
API公共依赖
时钟、变更源、状态同步器在进程内各只有一个实例
"""
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from roombook.config import get_settings
from roombook.db.database import SessionLocal, get_db
from roombook.db.store import BookingStore
from roombook.scheduling.clock import Clock, SettingsClock
from roombook.scheduling.feed import ChangeFeed, get_feed
from roombook.scheduling.hours import load_testing_clock
from roombook.scheduling.reconciler import StatusReconciler


@lru_cache(maxsize=1)
def _settings_clock() -> SettingsClock:
    return SettingsClock(
        load_testing_clock(SessionLocal),
        refresh_interval=get_settings().clock_refresh_interval,
    )


def get_clock() -> Clock:
    """当前时间来源（可被 testing_clock 配置覆盖）"""
    return _settings_clock()


def invalidate_clock() -> None:
    _settings_clock().invalidate()


def get_change_feed() -> ChangeFeed:
    return get_feed()


def get_reconciler(clock: Clock = Depends(get_clock)) -> StatusReconciler:
    return StatusReconciler(clock, auto_activate=get_settings().auto_activate)


def get_store(db: Session = Depends(get_db), feed: ChangeFeed = Depends(get_change_feed)) -> BookingStore:
    return BookingStore(db, feed=feed)


def get_session_factory():
    """后台读取（网格视图、定时同步）使用的会话工厂"""
    return SessionLocal
