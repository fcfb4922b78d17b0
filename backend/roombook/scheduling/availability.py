"""
可用时长计算
计算新预约可选时长、已有预约可延长时长，以及某一时刻各房间的占用情况
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Sequence

from roombook.scheduling.slots import SLOT_MINUTES
from roombook.scheduling.states import (
    BookingState, booking_end, booking_start, format_minutes_label, is_blocking, state_of,
)

MAX_INCREMENT_MINUTES = 120


def _day_boundary(day: date) -> datetime:
    """预约不跨日，限制在预约日的24:00"""
    return datetime.combine(day, datetime.min.time()) + timedelta(days=1)


def _others(bookings: Iterable, exclude_id=None) -> list:
    return [b for b in bookings if is_blocking(b) and (exclude_id is None or b.id != exclude_id)]


def _increments(allowed_minutes: int, cap: Optional[int], step: int = SLOT_MINUTES) -> List[int]:
    ceiling = allowed_minutes if cap is None else min(allowed_minutes, cap)
    return list(range(step, ceiling + 1, step)) if ceiling >= step else []


def _allowed_minutes(reference: datetime, limit: datetime) -> int:
    seconds = (limit - reference).total_seconds()
    return max(0, int(seconds // 60))


def limiting_instant(
    reference: datetime,
    others: Sequence,
    closing: datetime,
    inclusive: bool,
    day: Optional[date] = None,
) -> datetime:
    """
    参考时刻之后最近的其它预约开始时间，没有则为关门时间
    inclusive=True 时包含恰好在参考时刻开始的预约（用于延长）
    day 为预约日，缺省取参考时刻所在日期
    """
    limit = min(closing, _day_boundary(day or reference.date()))
    for other in others:
        other_start = booking_start(other)
        after = other_start >= reference if inclusive else other_start > reference
        if after and other_start < limit:
            limit = other_start
    return limit


def available_durations(
    start: datetime,
    bookings: Iterable,
    closing: datetime,
    exclude_id=None,
    current: Optional[int] = None,
    cap: Optional[int] = MAX_INCREMENT_MINUTES,
) -> List[int]:
    """
    新预约（或编辑中的预约）从start开始可选的时长（分钟）
    start落在其它预约内时没有可选项
    编辑时保留当前时长，即使它超过了展示上限
    """
    others = _others(bookings, exclude_id)
    for other in others:
        if booking_start(other) <= start < booking_end(other):
            return []
    limit = limiting_instant(start, others, closing, inclusive=False)
    allowed = _allowed_minutes(start, limit)
    options = _increments(allowed, cap)
    if current is not None and 0 < current <= allowed and current not in options:
        options.append(current)
        options.sort()
    return options


def available_extensions(
    booking,
    bookings: Iterable,
    closing: datetime,
    cap: Optional[int] = MAX_INCREMENT_MINUTES,
) -> List[int]:
    """已有预约从当前结束时间起可延长的分钟数"""
    end = booking_end(booking)
    others = _others(bookings, booking.id)
    # 结束时间为00:00时 end 已是次日零点，边界仍按预约日计算
    limit = limiting_instant(end, others, closing, inclusive=True, day=booking.booking_day)
    return _increments(_allowed_minutes(end, limit), cap)


@dataclass
class RoomStatus:
    room_id: int
    busy: bool = False
    has_overdue: bool = False
    overdue_label: Optional[str] = None
    has_reserved_late: bool = False
    reserved_late_label: Optional[str] = None

    @property
    def offered(self) -> bool:
        """迟到的预约或超时的预约不阻止重新分配房间"""
        return not self.busy or self.has_overdue or self.has_reserved_late


def room_status_at(
    rooms: Sequence,
    bookings: Iterable,
    at: datetime,
    now: datetime,
    late_grace_minutes: int = 10,
) -> List[RoomStatus]:
    """
    某一时刻各房间的状态
    - 有预约覆盖该时刻 -> busy（迟到超过宽限期的预约除外）
    - 当天更早开始、已超时的预约 -> has_overdue
    """
    statuses = {room.id: RoomStatus(room_id=room.id) for room in rooms}
    latest_overdue_end = {}
    for booking in bookings:
        status = statuses.get(booking.room_id)
        if status is None or not is_blocking(booking):
            continue
        start, end = booking_start(booking), booking_end(booking)
        state = state_of(booking)
        if start <= at < end:
            if state == BookingState.RESERVED:
                minutes_late = max(0, int((now - start).total_seconds() // 60))
                if minutes_late > late_grace_minutes:
                    status.has_reserved_late = True
                    status.reserved_late_label = format_minutes_label(minutes_late)
                    continue
            status.busy = True
        if start.date() == at.date() and start < at:
            overdue = state == BookingState.OVERDUE or (state == BookingState.ACTIVE and end < now)
            if overdue:
                previous = latest_overdue_end.get(booking.room_id)
                if previous is None or end > previous:
                    latest_overdue_end[booking.room_id] = end
    for room_id, end in latest_overdue_end.items():
        minutes = max(0, int((now - end).total_seconds() // 60))
        statuses[room_id].has_overdue = True
        statuses[room_id].overdue_label = format_minutes_label(minutes)
    return [statuses[room.id] for room in rooms]
