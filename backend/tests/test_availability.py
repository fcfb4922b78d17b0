"""
可用时长测试
"""
from datetime import date, datetime, time
from types import SimpleNamespace

from roombook.scheduling.availability import available_durations, available_extensions, room_status_at

DAY = date(2025, 3, 10)
CLOSING = datetime(2025, 3, 10, 21, 0)


def booking(id, start, end, state="Reserved", room_id=1):
    return SimpleNamespace(id=id, room_id=room_id, booking_day=DAY, start_time=start, end_time=end, state=state)


def at(hour, minute=0):
    return datetime(2025, 3, 10, hour, minute)


def test_limited_by_next_booking():
    bookings = [booking(1, time(11, 0), time(12, 0))]
    assert available_durations(at(10, 0), bookings, CLOSING) == [30, 60]


def test_capped_at_two_hours():
    assert available_durations(at(9, 0), [], CLOSING) == [30, 60, 90, 120]


def test_limited_by_closing():
    assert available_durations(at(20, 0), [], CLOSING) == [30, 60]


def test_start_inside_booking_has_no_options():
    bookings = [booking(1, time(9, 0), time(10, 30))]
    assert available_durations(at(10, 0), bookings, CLOSING) == []


def test_ended_bookings_do_not_block():
    bookings = [booking(1, time(10, 30), time(11, 0), state="Ended")]
    assert available_durations(at(10, 0), bookings, CLOSING) == [30, 60, 90, 120]


def test_editing_excludes_own_booking_and_keeps_current_duration():
    own = booking(1, time(9, 0), time(12, 0))
    assert available_durations(at(9, 0), [own], CLOSING, exclude_id=1, current=180) == [30, 60, 90, 120, 180]
    assert available_durations(at(9, 0), [own], CLOSING) == []


def test_no_options_past_day_boundary():
    late_closing = datetime(2025, 3, 11, 2, 0)
    assert available_durations(at(23, 0), [], late_closing) == [30, 60]


def test_extensions_limited_by_booking_starting_at_end():
    current = booking(1, time(9, 0), time(10, 0), state="Active")
    assert available_extensions(current, [current, booking(2, time(10, 0), time(11, 0))], CLOSING) == []
    assert available_extensions(current, [current, booking(2, time(11, 0), time(12, 0))], CLOSING) == [30, 60]


def test_extensions_capped_and_limited_by_closing():
    current = booking(1, time(9, 0), time(10, 0), state="Active")
    assert available_extensions(current, [current], CLOSING) == [30, 60, 90, 120]
    evening = booking(2, time(19, 0), time(20, 30), state="Active")
    assert available_extensions(evening, [evening], CLOSING) == [30]


def test_room_status_busy_and_free():
    rooms = [SimpleNamespace(id=1), SimpleNamespace(id=2)]
    bookings = [booking(1, time(10, 0), time(11, 0), state="Active")]
    statuses = room_status_at(rooms, bookings, at(10, 0), now=at(10, 0))
    assert statuses[0].busy and not statuses[0].offered
    assert not statuses[1].busy and statuses[1].offered


def test_room_status_late_reservation_keeps_room_offered():
    rooms = [SimpleNamespace(id=1)]
    bookings = [booking(1, time(10, 0), time(11, 0))]
    status = room_status_at(rooms, bookings, at(10, 0), now=at(10, 25))[0]
    assert status.has_reserved_late
    assert status.reserved_late_label == "25m"
    assert status.offered


def test_room_status_reports_overdue_previous_booking():
    rooms = [SimpleNamespace(id=1)]
    bookings = [booking(1, time(8, 0), time(9, 0), state="Overdue")]
    status = room_status_at(rooms, bookings, at(10, 0), now=at(10, 5))[0]
    assert status.has_overdue
    assert status.overdue_label == "1h 5m"
    assert status.offered


def test_extensions_stop_at_midnight_with_overnight_hours():
    overnight_closing = datetime(2025, 3, 11, 6, 0)
    late = booking(1, time(23, 0), time(0, 0), state="Active")
    assert available_extensions(late, [late], overnight_closing) == []
    earlier = booking(2, time(22, 0), time(23, 0), state="Active")
    assert available_extensions(earlier, [earlier], overnight_closing) == [30, 60]
