"""
时钟抽象
业务逻辑只通过Clock获取当前时间，便于用模拟时间演练和测试
"""
import logging
import threading
import time as _time
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Callable, Optional

from roombook.scheduling.slots import parse_time_of_day

logger = logging.getLogger(__name__)


class Clock:
    """当前时间来源"""

    def now(self) -> datetime:
        raise NotImplementedError

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """真实系统时间（本地时间，无时区）"""

    def now(self) -> datetime:
        return datetime.now().replace(microsecond=0)


class FixedClock(Clock):
    """固定的模拟时间"""

    def __init__(self, moment: datetime):
        self.moment = moment

    @classmethod
    def at(cls, day: date, clock_time: time) -> "FixedClock":
        return cls(datetime.combine(day, clock_time))

    def set(self, moment: datetime) -> None:
        self.moment = moment

    def now(self) -> datetime:
        return self.moment


@dataclass(frozen=True)
class TestingClock:
    """settings表中 testing_clock 的内容"""
    __test__ = False

    enabled: bool = False
    date: Optional[str] = None
    time: Optional[str] = None

    @classmethod
    def parse(cls, value: Any) -> Optional["TestingClock"]:
        if not isinstance(value, dict):
            return None
        return cls(
            enabled=bool(value.get("enabled", False)),
            date=value.get("date"),
            time=value.get("time"),
        )

    def to_value(self) -> dict:
        return {"enabled": self.enabled, "date": self.date, "time": self.time}

    def resolve(self, fallback: datetime) -> Optional[datetime]:
        """
        计算模拟时间
        缺少日期时使用真实日期，缺少时间时使用00:00；格式错误返回None
        """
        if not self.enabled:
            return None
        try:
            day = date.fromisoformat(self.date) if self.date else fallback.date()
        except ValueError:
            logger.warning("testing_clock 日期格式错误: %r", self.date)
            return None
        clock_time = parse_time_of_day(self.time) if self.time else time(0, 0)
        if clock_time is None:
            logger.warning("testing_clock 时间格式错误: %r", self.time)
            return None
        return datetime.combine(day, clock_time)


class SettingsClock(Clock):
    """
    根据 testing_clock 配置决定使用模拟时间还是系统时间
    配置读取结果缓存 refresh_interval 秒，读取失败时沿用上一次结果
    """

    def __init__(
        self,
        loader: Callable[[], Any],
        refresh_interval: float = 10.0,
        system: Optional[Clock] = None,
        monotonic: Callable[[], float] = _time.monotonic,
    ):
        self._loader = loader
        self._refresh_interval = refresh_interval
        self._system = system or SystemClock()
        self._monotonic = monotonic
        self._lock = threading.Lock()
        self._cached: Optional[TestingClock] = None
        self._loaded_at: Optional[float] = None

    def invalidate(self) -> None:
        """配置被修改后立即失效缓存"""
        with self._lock:
            self._loaded_at = None

    def _testing_clock(self) -> Optional[TestingClock]:
        with self._lock:
            stamp = self._monotonic()
            if self._loaded_at is not None and stamp - self._loaded_at < self._refresh_interval:
                return self._cached
            try:
                self._cached = TestingClock.parse(self._loader())
            except Exception as e:
                logger.warning("读取 testing_clock 失败，沿用上次结果: %s", e)
            self._loaded_at = stamp
            return self._cached

    @property
    def simulated(self) -> bool:
        config = self._testing_clock()
        return bool(config and config.enabled)

    def now(self) -> datetime:
        real = self._system.now()
        config = self._testing_clock()
        if config is None:
            return real
        simulated = config.resolve(real)
        return simulated if simulated is not None else real
