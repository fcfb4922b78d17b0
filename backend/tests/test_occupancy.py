"""
占用映射测试
"""
from datetime import date, datetime, time
from types import SimpleNamespace

from roombook.scheduling.occupancy import (
    CellKind, anchor_payload, display_color, display_label, map_occupancy, row_span, text_color,
)
from roombook.scheduling.slots import OpeningHours, generate_slots

DAY = date(2025, 3, 10)
ROOMS = [SimpleNamespace(id=1, name="Room 1"), SimpleNamespace(id=2, name="Room 2")]


def booking(id, room_id, start, end, state="Reserved", course=None, course_name=None):
    return SimpleNamespace(
        id=id, room_id=room_id, booking_day=DAY, start_time=start, end_time=end, state=state,
        course=course, course_name=course_name, booked_by="Ms Smith",
    )


def slots(start=time(8, 0), end=time(12, 0)):
    return generate_slots(DAY, OpeningHours(start, end))


def test_row_span():
    assert row_span(booking(1, 1, time(9, 0), time(10, 30))) == 3
    assert row_span(booking(2, 1, time(9, 0), time(9, 30))) == 1
    assert row_span(booking(3, 1, time(23, 0), time(0, 0))) == 2


def test_anchor_and_covered_cells():
    grid = map_occupancy(ROOMS, [booking(1, 1, time(9, 0), time(10, 30))], slots())
    anchor = grid.cell(1, datetime(2025, 3, 10, 9, 0))
    assert anchor.kind == CellKind.ANCHOR
    assert anchor.row_span == 3
    assert grid.cell(1, datetime(2025, 3, 10, 9, 30)).kind == CellKind.COVERED
    assert grid.cell(1, datetime(2025, 3, 10, 10, 0)).kind == CellKind.COVERED
    assert grid.cell(1, datetime(2025, 3, 10, 10, 30)).kind == CellKind.FREE
    assert grid.cell(2, datetime(2025, 3, 10, 9, 0)).bookable
    assert len(grid.anchors()) == 1


def test_every_row_has_one_cell_per_room():
    grid = map_occupancy(ROOMS, [], slots())
    assert len(grid.rows) == 8
    assert all(len(row.cells) == 2 for row in grid.rows)
    assert all(cell.kind == CellKind.FREE for row in grid.rows for cell in row.cells)


def test_first_booking_in_persisted_order_wins():
    later = booking(5, 1, time(9, 0), time(10, 0))
    earlier = booking(2, 1, time(9, 30), time(10, 30))
    grid = map_occupancy(ROOMS, [later, earlier], slots())
    assert grid.cell(1, datetime(2025, 3, 10, 9, 0)).booking is later
    # 9:30 两条都覆盖，id 小的优先
    overlap = grid.cell(1, datetime(2025, 3, 10, 9, 30))
    assert overlap.booking is earlier
    assert overlap.kind == CellKind.ANCHOR


def test_booking_starting_off_grid_has_no_anchor():
    grid = map_occupancy(ROOMS, [booking(1, 1, time(7, 0), time(9, 0))], slots())
    assert grid.anchors() == []
    assert grid.cell(1, datetime(2025, 3, 10, 8, 0)).kind == CellKind.COVERED


def test_now_row_uses_nearest_slot():
    grid = map_occupancy(ROOMS, [], slots(), now=datetime(2025, 3, 10, 9, 50))
    assert [row.slot for row in grid.rows if row.is_now] == [datetime(2025, 3, 10, 10, 0)]


def test_display_values():
    course = SimpleNamespace(name="Physics", color_hex="#ffeb3b")
    assert display_label(booking(1, 1, time(9, 0), time(10, 0), course=course)) == "Physics"
    assert display_label(booking(1, 1, time(9, 0), time(10, 0), course_name="Drama club")) == "Drama club"
    assert display_label(booking(1, 1, time(9, 0), time(10, 0))) == "Course"
    assert display_color(booking(1, 1, time(9, 0), time(10, 0))) == "#64748b"
    assert text_color("#ffeb3b") == "black"
    assert text_color("#1e3a8a") == "white"


def test_anchor_payload_reports_late_reservation():
    grid = map_occupancy(ROOMS, [booking(1, 1, time(9, 0), time(10, 0))], slots())
    payload = anchor_payload(grid.cell(1, datetime(2025, 3, 10, 9, 0)), now=datetime(2025, 3, 10, 9, 11))
    assert payload["booking_id"] == 1
    assert payload["row_span"] == 2
    assert payload["soft_state"] == "late"
