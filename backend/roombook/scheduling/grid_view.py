"""
某一天的预约网格视图
加载房间、预约、营业时间并计算占用网格；
定时同步状态与变更通知共用一个入口，刚由自己写入的同步结果在冷却期内不再重复拉取
视图关闭后，仍在进行中的读取结果会被丢弃
"""
import logging
import time as _time
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time
from typing import Callable, Dict, List, Optional

from roombook.db.store import BookingStore
from roombook.scheduling.clock import Clock
from roombook.scheduling.feed import ORIGIN_RECONCILER, ChangeEvent, ChangeFeed, Subscription
from roombook.scheduling.hours import LEGACY_OPENING_HOURS_KEY, OPERATION_HOURS_KEY, load_opening_hours
from roombook.scheduling.occupancy import CellKind, OccupancyGrid, anchor_payload, map_occupancy
from roombook.scheduling.reconciler import ReconcileResult, StatusReconciler
from roombook.scheduling.slots import OpeningHours, generate_slots

logger = logging.getLogger(__name__)


@dataclass
class CourseRow:
    id: int
    name: str
    color_hex: Optional[str] = None


@dataclass
class RoomRow:
    id: int
    name: str
    capacity: int = 0
    borrowable_items: List[str] = field(default_factory=list)

    @classmethod
    def from_orm(cls, room) -> "RoomRow":
        return cls(id=room.id, name=room.name, capacity=room.capacity or 0,
                   borrowable_items=list(room.borrowable_items or []))


@dataclass
class BookingRow:
    """与会话无关的预约快照"""
    id: int
    room_id: int
    booking_day: date
    start_time: time
    end_time: time
    state: str
    booked_by: str = ""
    course_id: Optional[int] = None
    course_name: Optional[str] = None
    course: Optional[CourseRow] = None
    borrowed_items: List[str] = field(default_factory=list)

    @classmethod
    def from_orm(cls, booking) -> "BookingRow":
        course = booking.course
        return cls(
            id=booking.id,
            room_id=booking.room_id,
            booking_day=booking.booking_day,
            start_time=booking.start_time,
            end_time=booking.end_time,
            state=booking.state,
            booked_by=booking.booked_by,
            course_id=booking.course_id,
            course_name=booking.course_name,
            course=CourseRow(course.id, course.name, course.color_hex) if course is not None else None,
            borrowed_items=list(booking.borrowed_items or []),
        )


def grid_to_dict(grid: OccupancyGrid, day: date, hours: OpeningHours,
                 now: Optional[datetime] = None, late_grace_minutes: int = 10) -> dict:
    """网格序列化（覆盖格不输出预约信息）"""
    rows = []
    for row in grid.rows:
        cells = []
        for cell in row.cells:
            item = {"room_id": cell.room_id, "kind": cell.kind.value}
            if cell.kind == CellKind.ANCHOR:
                item.update(anchor_payload(cell, now, late_grace_minutes))
            cells.append(item)
        rows.append({
            "slot": row.slot.isoformat(),
            "time": row.slot.strftime("%H:%M"),
            "is_now": row.is_now,
            "cells": cells,
        })
    return {
        "day": day.isoformat(),
        "opening_hours": hours.to_value(),
        "now": now.isoformat() if now is not None else None,
        "rooms": [{"id": r.id, "name": r.name, "capacity": getattr(r, "capacity", None)} for r in grid.rooms],
        "rows": rows,
    }


class DayGridView:
    """一天的实时网格"""

    def __init__(
        self,
        session_factory: Callable,
        day: date,
        clock: Clock,
        feed: Optional[ChangeFeed] = None,
        reconciler: Optional[StatusReconciler] = None,
        cooldown: float = 1.2,
        late_grace_minutes: int = 10,
        monotonic: Callable[[], float] = _time.monotonic,
    ):
        self.session_factory = session_factory
        self.day = day
        self.clock = clock
        self.feed = feed
        self.reconciler = reconciler
        self.cooldown = cooldown
        self.late_grace_minutes = late_grace_minutes
        self._monotonic = monotonic

        self.rooms: List[RoomRow] = []
        self.bookings: List[BookingRow] = []
        self.hours = OpeningHours()
        self.mounted = True
        self.loaded = False
        self.subscription: Optional[Subscription] = None
        self._cooldown_until = 0.0

    # ---------- 读取 ----------

    def _fetch(self, rooms: bool = True, bookings: bool = True, hours: bool = True) -> Dict[str, object]:
        db = self.session_factory()
        try:
            store = BookingStore(db)
            data: Dict[str, object] = {}
            if rooms:
                data["rooms"] = [RoomRow.from_orm(r) for r in store.list_rooms()]
            if bookings:
                data["bookings"] = [BookingRow.from_orm(b) for b in store.list_bookings(self.day)]
            if hours:
                data["hours"] = load_opening_hours(store)
            return data
        finally:
            db.close()

    def _apply(self, data: Dict[str, object]) -> bool:
        if not self.mounted:
            logger.debug("视图已关闭，丢弃 %s 的读取结果", self.day)
            return False
        if "rooms" in data:
            self.rooms = data["rooms"]
        if "bookings" in data:
            self.bookings = data["bookings"]
        if "hours" in data:
            self.hours = data["hours"]
        return True

    def load(self) -> bool:
        """加载全部数据"""
        applied = self._apply(self._fetch())
        self.loaded = self.loaded or applied
        return applied

    def refresh_bookings(self) -> bool:
        return self._apply(self._fetch(rooms=False, hours=False))

    # ---------- 变更处理 ----------

    def subscribe(self) -> Subscription:
        if self.feed is None:
            raise RuntimeError("no change feed configured")
        self.subscription = self.feed.subscribe(day=self.day)
        return self.subscription

    def in_cooldown(self) -> bool:
        return self._monotonic() < self._cooldown_until

    def _known_booking(self, row_id: Optional[int]) -> bool:
        return row_id is not None and any(b.id == row_id for b in self.bookings)

    def is_relevant(self, event: ChangeEvent) -> bool:
        if event.table == "bookings":
            if event.day is not None and event.day == self.day:
                return True
            return self._known_booking(event.row_id)
        if event.table in ("rooms", "courses"):
            return True
        if event.table == "settings":
            key = (event.record or {}).get("key")
            return key in (OPERATION_HOURS_KEY, LEGACY_OPENING_HOURS_KEY)
        return False

    def handle_change(self, event: ChangeEvent) -> bool:
        """
        处理一条变更，返回视图是否更新
        冷却期内的同步写入视为自己写入的回声，已在本地合并，不再拉取
        """
        if not self.mounted or not self.is_relevant(event):
            return False
        if event.table == "bookings" and event.origin == ORIGIN_RECONCILER and self.in_cooldown():
            return False
        if event.table == "bookings":
            return self.refresh_bookings()
        if event.table == "settings":
            return self._apply(self._fetch(rooms=False, bookings=False))
        return self.load()

    # ---------- 定时同步 ----------

    def merge(self, rows) -> None:
        """把同步结果合并进本地预约列表"""
        updated = {row.id: row for row in rows}
        merged = []
        for booking in self.bookings:
            row = updated.get(booking.id)
            merged.append(replace(booking, state=row.state, end_time=row.end_time) if row is not None else booking)
        self.bookings = merged

    def tick(self) -> bool:
        """执行一次状态同步，返回本地视图是否变化"""
        if self.reconciler is None or not self.mounted:
            return False
        db = self.session_factory()
        try:
            store = BookingStore(db, feed=self.feed, origin=ORIGIN_RECONCILER)
            # 写入的通知会同步投递，先进入冷却期
            self._cooldown_until = self._monotonic() + self.cooldown
            result: ReconcileResult = self.reconciler.reconcile_safely(store)
            changed = [BookingRow.from_orm(row) for row in result.changed]
        finally:
            db.close()
        if not changed or not self.mounted:
            return False
        self.merge(changed)
        self._cooldown_until = self._monotonic() + self.cooldown
        return True

    # ---------- 输出 ----------

    def grid(self) -> OccupancyGrid:
        return map_occupancy(self.rooms, self.bookings, generate_slots(self.day, self.hours), self.clock.now())

    def snapshot(self) -> dict:
        return grid_to_dict(self.grid(), self.day, self.hours, self.clock.now(), self.late_grace_minutes)

    def close(self) -> None:
        """关闭视图并取消订阅"""
        self.mounted = False
        if self.subscription is not None:
            self.subscription.close()
            self.subscription = None
