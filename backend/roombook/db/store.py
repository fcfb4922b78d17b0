"""
预约数据存取
封装对 rooms / bookings / settings 表的查询与写入，写入后发布变更通知
同一房间同一天的写入串行化，并在事务内检查时间段重叠
"""
import logging
import re
import threading
from collections import defaultdict
from datetime import date, time
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from roombook.errors import CheckViolationError, ForeignKeyError, OverlapError, from_integrity_error
from roombook.models.booking import Booking
from roombook.models.course import Course
from roombook.models.room import Room
from roombook.models.setting import Setting
from roombook.scheduling.feed import ORIGIN_API, ChangeEvent, ChangeFeed
from roombook.scheduling.slots import is_slot_aligned
from roombook.scheduling.states import (
    MIDNIGHT, BLOCKING_STATES, BookingState, booking_end, booking_start,
)

logger = logging.getLogger(__name__)

ROOM_NUMBER_PATTERN = re.compile(r"^Room\s*(\d+)$", re.IGNORECASE)

BOOKING_FIELDS = (
    "room_id", "booking_day", "start_time", "end_time", "state", "course_id",
    "course_name", "booked_by", "student_numbers", "borrowed_items",
)


def room_sort_key(room) -> Tuple[int, int, str]:
    """'Room N' 按数字排在前面，其余按名称（忽略大小写）"""
    match = ROOM_NUMBER_PATTERN.match(room.name or "")
    if match:
        return (0, int(match.group(1)), "")
    return (1, 0, (room.name or "").casefold())


def sort_rooms(rooms) -> list:
    return sorted(rooms, key=room_sort_key)


class _RoomDayLocks:
    """按 (房间, 日期) 分配的写锁"""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Tuple[int, date], threading.Lock] = defaultdict(threading.Lock)

    def get(self, room_id: int, day: date) -> threading.Lock:
        with self._guard:
            return self._locks[(room_id, day)]


_room_day_locks = _RoomDayLocks()


class _Candidate:
    """重叠检查用的临时对象"""

    def __init__(self, fields: Dict[str, Any]):
        self.booking_day = fields["booking_day"]
        self.start_time = fields["start_time"]
        self.end_time = fields["end_time"]


class BookingStore:
    """数据存取（基于SQLAlchemy会话）"""

    def __init__(self, db: Session, feed: Optional[ChangeFeed] = None, origin: str = ORIGIN_API):
        self.db = db
        self.feed = feed
        self.origin = origin

    # ---------- 通知 ----------

    def publish(self, table: str, action: str, row_id: Optional[int] = None,
                day: Optional[date] = None, record: Optional[dict] = None) -> None:
        if self.feed is None:
            return
        self.feed.publish(ChangeEvent(table=table, action=action, row_id=row_id, day=day,
                                      record=record, origin=self.origin))

    def _commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise from_integrity_error(e) from e

    # ---------- 房间 ----------

    def list_rooms(self, available_only: bool = True) -> List[Room]:
        """获取房间列表（按 Room N 数字顺序排序）"""
        query = self.db.query(Room)
        if available_only:
            query = query.filter(or_(Room.is_available.is_(True), Room.is_available.is_(None)))
        return sort_rooms(query.all())

    def get_room(self, room_id: int) -> Optional[Room]:
        return self.db.query(Room).filter(Room.id == room_id).first()

    # ---------- 预约 ----------

    def list_bookings(self, day: date, room_id: Optional[int] = None) -> List[Booking]:
        """获取某天的预约（含课程信息），按持久化顺序"""
        query = self.db.query(Booking).filter(Booking.booking_day == day)
        if room_id is not None:
            query = query.filter(Booking.room_id == room_id)
        return query.order_by(Booking.id).all()

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        return self.db.query(Booking).filter(Booking.id == booking_id).first()

    def _validate(self, fields: Dict[str, Any]) -> None:
        start, end = fields["start_time"], fields["end_time"]
        if not (is_slot_aligned(start) and is_slot_aligned(end)):
            raise CheckViolationError("start/end must be on a 30-minute boundary")
        if end != MIDNIGHT and end <= start:
            raise CheckViolationError("end_time must be after start_time")
        if self.db.query(Room.id).filter(Room.id == fields["room_id"]).first() is None:
            raise ForeignKeyError(f"room {fields['room_id']} does not exist")
        course_id = fields.get("course_id")
        if course_id is not None and self.db.query(Course.id).filter(Course.id == course_id).first() is None:
            raise ForeignKeyError(f"course {course_id} does not exist")
        BookingState(fields["state"])

    def _check_overlap(self, fields: Dict[str, Any], exclude_id: Optional[int]) -> None:
        if BookingState(fields["state"]) not in BLOCKING_STATES:
            return
        candidate = _Candidate(fields)
        start, end = booking_start(candidate), booking_end(candidate)
        others = (
            self.db.query(Booking)
            .filter(
                Booking.room_id == fields["room_id"],
                Booking.booking_day == fields["booking_day"],
                Booking.state.in_([s.value for s in BLOCKING_STATES]),
            )
            .all()
        )
        for other in others:
            if exclude_id is not None and other.id == exclude_id:
                continue
            if booking_start(other) < end and booking_end(other) > start:
                logger.info("房间 %s 在 %s %s-%s 与预约 %s 重叠", fields["room_id"], fields["booking_day"],
                            start.strftime("%H:%M"), end.strftime("%H:%M"), other.id)
                raise OverlapError(f"overlaps booking {other.id}")

    def _write(self, booking: Booking, fields: Dict[str, Any], action: str) -> Booking:
        self._validate(fields)
        with _room_day_locks.get(fields["room_id"], fields["booking_day"]):
            self._check_overlap(fields, booking.id)
            for key, value in fields.items():
                setattr(booking, key, value)
            if action == "insert":
                self.db.add(booking)
            self._commit()
        self.db.refresh(booking)
        self.publish("bookings", action, booking.id, booking.booking_day, booking.to_record())
        return booking

    def insert_booking(self, **fields) -> Booking:
        """新增预约"""
        data = {key: fields.get(key) for key in BOOKING_FIELDS}
        data["borrowed_items"] = list(data.get("borrowed_items") or [])
        data["state"] = BookingState(data.get("state") or BookingState.RESERVED).value
        return self._write(Booking(), data, "insert")

    def replace_booking(self, booking: Booking, **fields) -> Booking:
        """整行更新"""
        data = {key: fields.get(key) for key in BOOKING_FIELDS}
        data["borrowed_items"] = list(data.get("borrowed_items") or [])
        data["state"] = BookingState(data.get("state") or booking.state).value
        return self._write(booking, data, "update")

    def patch_booking(self, booking: Booking, **changes) -> Booking:
        """部分字段更新（如 state / end_time）"""
        data = {key: getattr(booking, key) for key in BOOKING_FIELDS}
        for key, value in changes.items():
            if key not in BOOKING_FIELDS:
                raise ValueError(f"unknown booking field: {key}")
            data[key] = value.value if isinstance(value, BookingState) else value
        return self._write(booking, data, "update")

    def delete_booking(self, booking: Booking) -> None:
        """删除预约（物理删除）"""
        booking_id, day = booking.id, booking.booking_day
        self.db.delete(booking)
        self._commit()
        self.publish("bookings", "delete", booking_id, day)

    def transition_states(
        self,
        from_state: BookingState,
        to_state: BookingState,
        day: date,
        end_before: Optional[time] = None,
        end_after: Optional[time] = None,
        start_at_or_before: Optional[time] = None,
    ) -> List[Booking]:
        """
        批量条件更新：state=to_state where state=from_state and 时间条件
        返回被更新的行；没有符合条件的行时不写库
        """
        query = self.db.query(Booking).filter(Booking.state == from_state.value, Booking.booking_day == day)
        if end_before is not None:
            query = query.filter(Booking.end_time < end_before, Booking.end_time != MIDNIGHT)
        if end_after is not None:
            query = query.filter(or_(Booking.end_time > end_after, Booking.end_time == MIDNIGHT))
        if start_at_or_before is not None:
            query = query.filter(Booking.start_time <= start_at_or_before)
        rows = query.order_by(Booking.id).all()
        if not rows:
            return []
        for row in rows:
            row.state = to_state.value
        self._commit()
        for row in rows:
            self.publish("bookings", "update", row.id, row.booking_day, row.to_record())
        return rows

    # ---------- 设置 ----------

    def get_setting(self, key: str, default: Any = None) -> Any:
        setting = self.db.query(Setting).filter(Setting.key == key).first()
        if setting is None or setting.value is None:
            return default
        return setting.value

    def put_setting(self, key: str, value: Any, description: Optional[str] = None) -> Setting:
        """写入设置（不存在则创建）"""
        setting = self.db.query(Setting).filter(Setting.key == key).first()
        if setting is None:
            setting = Setting(key=key, value=value, description=description)
            self.db.add(setting)
            action = "insert"
        else:
            setting.value = value
            if description is not None:
                setting.description = description
            action = "update"
        self._commit()
        self.db.refresh(setting)
        self.publish("settings", action, setting.id, record={"key": key, "value": value})
        return setting
