"""
营业时间与模拟时钟的读取
读取失败时依次回退到：上一次成功读取的值 -> 缺省值
"""
import logging
import threading
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from roombook.config import Settings, get_settings
from roombook.db.store import BookingStore
from roombook.scheduling.slots import OpeningHours, parse_time_of_day

logger = logging.getLogger(__name__)

OPERATION_HOURS_KEY = "operation_hours"
LEGACY_OPENING_HOURS_KEY = "opening_hours"
TESTING_CLOCK_KEY = "testing_clock"

_lock = threading.Lock()
_last_known: Optional[OpeningHours] = None


def default_opening_hours(settings: Optional[Settings] = None) -> OpeningHours:
    settings = settings or get_settings()
    start = parse_time_of_day(settings.default_open)
    end = parse_time_of_day(settings.default_close)
    if start is None or end is None:
        return OpeningHours()
    return OpeningHours(start=start, end=end)


def remember_opening_hours(hours: OpeningHours) -> None:
    global _last_known
    with _lock:
        _last_known = hours


def last_known_opening_hours() -> Optional[OpeningHours]:
    with _lock:
        return _last_known


def load_opening_hours(store) -> OpeningHours:
    """读取营业时间（operation_hours，兼容旧键 opening_hours）"""
    default = default_opening_hours()
    try:
        value = store.get_setting(OPERATION_HOURS_KEY)
        if value is None:
            value = store.get_setting(LEGACY_OPENING_HOURS_KEY)
    except SQLAlchemyError as e:
        logger.error("读取营业时间失败，使用本地缓存或缺省值: %s", e)
        return last_known_opening_hours() or default
    if value is None:
        return default
    hours = OpeningHours.parse(value, default=default)
    remember_opening_hours(hours)
    return hours


def load_testing_clock(session_factory):
    """给 SettingsClock 使用的读取函数"""

    def _load():
        db = session_factory()
        try:
            return BookingStore(db).get_setting(TESTING_CLOCK_KEY)
        finally:
            db.close()

    return _load
