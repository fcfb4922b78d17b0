"""
占用映射
把预约映射到 房间 × 时间段 的格子上，起始格合并后续格（rowspan）
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from roombook.scheduling.slots import SLOT_MINUTES, round_to_nearest_slot
from roombook.scheduling.states import booking_end, booking_start, soft_state

FALLBACK_COLOR = "#64748b"
FALLBACK_LABEL = "Course"


class CellKind(str, Enum):
    FREE = "free"
    ANCHOR = "anchor"
    COVERED = "covered"


@dataclass
class Cell:
    room_id: int
    slot: datetime
    kind: CellKind = CellKind.FREE
    booking: object = None
    row_span: int = 1

    @property
    def bookable(self) -> bool:
        return self.kind == CellKind.FREE


@dataclass
class Row:
    slot: datetime
    cells: List[Cell] = field(default_factory=list)
    is_now: bool = False


@dataclass
class OccupancyGrid:
    rooms: list
    slots: List[datetime]
    rows: List[Row]

    def cell(self, room_id: int, slot: datetime) -> Optional[Cell]:
        for row in self.rows:
            if row.slot != slot:
                continue
            for cell in row.cells:
                if cell.room_id == room_id:
                    return cell
        return None

    def anchors(self, room_id: Optional[int] = None) -> List[Cell]:
        return [
            cell
            for row in self.rows
            for cell in row.cells
            if cell.kind == CellKind.ANCHOR and (room_id is None or cell.room_id == room_id)
        ]


def row_span(booking) -> int:
    """预约占用的行数，至少1行"""
    minutes = (booking_end(booking) - booking_start(booking)).total_seconds() / 60
    minutes = max(SLOT_MINUTES, round(minutes))
    return max(1, int(minutes // SLOT_MINUTES))


def _persisted_order(bookings: Iterable) -> list:
    return sorted(bookings, key=lambda b: (b.id is None, b.id or 0))


def booking_for_cell(bookings: Sequence, room_id: int, slot: datetime):
    """返回覆盖该格子的第一条预约（按持久化顺序）"""
    for booking in bookings:
        if booking.room_id != room_id:
            continue
        if booking_start(booking) <= slot < booking_end(booking):
            return booking
    return None


def is_anchor(booking, slot: datetime) -> bool:
    """只有时刻与预约开始时间完全一致的格子才是起始格"""
    start = booking_start(booking)
    return slot.hour == start.hour and slot.minute == start.minute


def map_occupancy(rooms: Sequence, bookings: Iterable, slots: Iterable[datetime], now: Optional[datetime] = None) -> OccupancyGrid:
    """
    计算占用网格（纯函数）
    预约集合变化后需要重新计算
    """
    ordered = _persisted_order(bookings)
    slot_list = list(slots)
    now_slot = round_to_nearest_slot(now) if now is not None else None
    rows: List[Row] = []
    for slot in slot_list:
        row = Row(slot=slot, is_now=(now_slot == slot))
        for room in rooms:
            booking = booking_for_cell(ordered, room.id, slot)
            if booking is None:
                row.cells.append(Cell(room_id=room.id, slot=slot))
            elif is_anchor(booking, slot):
                row.cells.append(Cell(room_id=room.id, slot=slot, kind=CellKind.ANCHOR,
                                      booking=booking, row_span=row_span(booking)))
            else:
                row.cells.append(Cell(room_id=room.id, slot=slot, kind=CellKind.COVERED, booking=booking))
        rows.append(row)
    return OccupancyGrid(rooms=list(rooms), slots=slot_list, rows=rows)


def display_label(booking) -> str:
    course = getattr(booking, "course", None)
    if course is not None and getattr(course, "name", None):
        return course.name
    return booking.course_name or FALLBACK_LABEL


def display_color(booking) -> str:
    course = getattr(booking, "course", None)
    color = getattr(course, "color_hex", None) if course is not None else None
    return color or FALLBACK_COLOR


def text_color(hex_color: str) -> str:
    """根据背景亮度选择文字颜色"""
    try:
        value = hex_color.lstrip("#")
        r, g, b = (int(value[i:i + 2], 16) / 255 for i in (0, 2, 4))
    except (ValueError, AttributeError):
        return "white"
    luminance = 0.2126 * r + 0.7152 * g + 0.0722 * b
    return "black" if luminance > 0.6 else "white"


def anchor_payload(cell: Cell, now: Optional[datetime] = None, late_grace_minutes: int = 10) -> dict:
    """起始格的展示数据"""
    booking = cell.booking
    color = display_color(booking)
    return {
        "booking_id": booking.id,
        "row_span": cell.row_span,
        "label": display_label(booking),
        "booked_by": booking.booked_by,
        "state": str(booking.state.value if hasattr(booking.state, "value") else booking.state),
        "soft_state": soft_state(booking, now, late_grace_minutes) if now is not None else None,
        "color": color,
        "text_color": text_color(color),
    }

