"""
时间段生成
根据营业时间把一天切分为固定30分钟的时间段
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Iterator, Optional, Tuple

logger = logging.getLogger(__name__)

SLOT_MINUTES = 30
GRANULARITY = timedelta(minutes=SLOT_MINUTES)

DEFAULT_OPEN = time(6, 0)
DEFAULT_CLOSE = time(21, 0)


def parse_time_of_day(value: Any) -> Optional[time]:
    """解析 'H:MM' / 'HH:MM' / 'HH:MM:SS'，无法解析返回None"""
    if isinstance(value, time):
        return value
    if not isinstance(value, str):
        return None
    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        return None
    try:
        numbers = [int(p) for p in parts]
    except ValueError:
        return None
    hour, minute = numbers[0], numbers[1]
    second = numbers[2] if len(numbers) == 3 else 0
    if not (0 <= hour <= 23 and 0 <= minute <= 59 and 0 <= second <= 59):
        return None
    return time(hour, minute, second)


def is_slot_aligned(value: time) -> bool:
    """是否落在30分钟边界上"""
    return value.minute % SLOT_MINUTES == 0 and value.second == 0 and value.microsecond == 0


def round_to_nearest_slot(moment: datetime) -> datetime:
    """四舍五入到最近的30分钟"""
    base = moment.replace(minute=0, second=0, microsecond=0)
    minutes = moment.minute + moment.second / 60 + moment.microsecond / 60_000_000
    steps = int(minutes / SLOT_MINUTES + 0.5)
    return base + steps * GRANULARITY


def round_up_to_slot(moment: datetime) -> datetime:
    """向上取整到30分钟"""
    floored = moment.replace(minute=moment.minute - moment.minute % SLOT_MINUTES, second=0, microsecond=0)
    if floored == moment:
        return floored
    return floored + GRANULARITY


@dataclass(frozen=True)
class OpeningHours:
    """营业时间"""
    start: time = DEFAULT_OPEN
    end: time = DEFAULT_CLOSE

    @classmethod
    def parse(cls, value: Any, default: Optional["OpeningHours"] = None) -> "OpeningHours":
        """
        从配置值解析营业时间
        兼容旧字段 open/close；任何字段无法解析都回退到缺省值
        """
        fallback = default or cls()
        if isinstance(value, OpeningHours):
            return value
        if not isinstance(value, dict):
            if value is not None:
                logger.warning("营业时间配置格式错误，使用缺省值: %r", value)
            return fallback
        start = parse_time_of_day(value.get("start", value.get("open")))
        end = parse_time_of_day(value.get("end", value.get("close")))
        if start is None or end is None:
            logger.warning("营业时间配置无法解析，使用缺省值: %r", value)
            return fallback
        return cls(start=start, end=end)

    def to_value(self) -> dict:
        return {"start": self.start.strftime("%H:%M"), "end": self.end.strftime("%H:%M")}

    def window(self, day: date) -> Tuple[datetime, datetime]:
        """返回某天的营业起止时刻"""
        start = datetime.combine(day, self.start)
        end = datetime.combine(day, self.end)
        if end <= start:
            if end == start:
                logger.warning("开门与关门时间相同(%s)，按跨日24小时处理", self.start.strftime("%H:%M"))
            end += timedelta(days=1)
        return start, end

    def window_containing(self, moment: datetime) -> Optional[Tuple[datetime, datetime]]:
        """包含某时刻的营业时段（跨日营业时可能属于前一天）"""
        for day in (moment.date(), moment.date() - timedelta(days=1)):
            start, end = self.window(day)
            if start <= moment < end:
                return start, end
        return None


def generate_slots(day: date, hours: Optional[OpeningHours] = None) -> Iterator[datetime]:
    """
    生成某天的时间段
    从开门时刻开始每30分钟一个，直到关门时刻（不含）
    """
    start, end = (hours or OpeningHours()).window(day)
    current = start
    while current < end:
        yield current
        current += GRANULARITY
