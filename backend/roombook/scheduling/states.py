"""
预约状态定义
"""
from datetime import datetime, time, timedelta
from enum import Enum
from typing import Optional

MIDNIGHT = time(0, 0)


class BookingState(str, Enum):
    RESERVED = "Reserved"
    ACTIVE = "Active"
    OVERDUE = "Overdue"
    ENDED = "Ended"


# 占用房间、参与重叠判断的状态
BLOCKING_STATES = frozenset({BookingState.RESERVED, BookingState.ACTIVE, BookingState.OVERDUE})

# 可以延长 / 结束的状态
RUNNING_STATES = frozenset({BookingState.ACTIVE, BookingState.OVERDUE})


def state_of(booking) -> BookingState:
    return BookingState(booking.state)


def is_blocking(booking) -> bool:
    return state_of(booking) in BLOCKING_STATES


def booking_start(booking) -> datetime:
    return datetime.combine(booking.booking_day, booking.start_time)


def booking_end(booking) -> datetime:
    """结束时间00:00表示当天24:00"""
    end = datetime.combine(booking.booking_day, booking.end_time)
    if booking.end_time == MIDNIGHT:
        end += timedelta(days=1)
    return end


def duration_minutes(booking) -> int:
    return int((booking_end(booking) - booking_start(booking)).total_seconds() // 60)


def soft_state(booking, now: datetime, late_grace_minutes: int = 10) -> Optional[str]:
    """
    展示用的软状态（不写库）
    late: 预约已过开始时间超过宽限期仍未开始
    overdue: 使用中但已过结束时间
    """
    if booking is None:
        return None
    state = state_of(booking)
    if state == BookingState.RESERVED:
        if now > booking_start(booking) + timedelta(minutes=late_grace_minutes):
            return "late"
    elif state == BookingState.ACTIVE:
        if now > booking_end(booking):
            return "overdue"
    return None


def format_minutes_label(minutes: int) -> str:
    """格式化为 '1h 5m' 或 '5m'"""
    minutes = max(0, int(minutes))
    hours, rest = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}h {rest}m"
    return f"{rest}m"
