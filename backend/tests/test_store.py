"""
数据存取测试：重叠检查、约束、排序、变更通知
"""
from datetime import time

import pytest

from conftest import DAY, add_booking, add_room
from roombook.db.store import BookingStore, sort_rooms
from roombook.errors import (
    CheckViolationError, ForeignKeyError, OverlapError, map_store_error, status_code_for,
)
from roombook.scheduling.states import BookingState


def test_insert_and_list_in_persisted_order(store, room):
    second = add_booking(store, room, time(11, 0), time(12, 0))
    first = add_booking(store, room, time(9, 0), time(10, 0))
    assert [b.id for b in store.list_bookings(DAY)] == [second.id, first.id]
    assert store.list_bookings(DAY, room_id=room.id + 1) == []


def test_overlapping_blocking_booking_is_rejected(store, room):
    add_booking(store, room, time(9, 0), time(10, 0))
    with pytest.raises(OverlapError) as excinfo:
        add_booking(store, room, time(9, 30), time(10, 30))
    assert excinfo.value.code == "23P01"
    assert status_code_for(excinfo.value) == 409
    assert map_store_error(excinfo.value) == "This time slot is already booked. Please choose another time."


def test_touching_bookings_and_other_rooms_are_allowed(store, db, room):
    other_room = add_room(db, "Room 2")
    add_booking(store, room, time(9, 0), time(10, 0))
    add_booking(store, room, time(10, 0), time(11, 0))
    add_booking(store, other_room, time(9, 0), time(10, 0))
    assert len(store.list_bookings(DAY)) == 3


def test_ended_booking_does_not_block(store, room):
    add_booking(store, room, time(9, 0), time(10, 0), state="Ended")
    booking = add_booking(store, room, time(9, 0), time(10, 0), state="Active")
    assert booking.state == "Active"


def test_replacing_a_booking_ignores_itself(store, room):
    booking = add_booking(store, room, time(9, 0), time(10, 0))
    store.patch_booking(booking, end_time=time(11, 0))
    assert booking.end_time == time(11, 0)


def test_midnight_end_blocks_late_evening(store, room):
    add_booking(store, room, time(23, 0), time(0, 0))
    with pytest.raises(OverlapError):
        add_booking(store, room, time(23, 30), time(0, 0))


def test_time_constraints(store, room):
    with pytest.raises(CheckViolationError) as excinfo:
        add_booking(store, room, time(9, 15), time(10, 0))
    assert map_store_error(excinfo.value) == "Invalid booking time. Please use 30-minute intervals."
    with pytest.raises(CheckViolationError):
        add_booking(store, room, time(10, 0), time(9, 0))


def test_unknown_room_or_course(store, room):
    with pytest.raises(ForeignKeyError):
        store.insert_booking(room_id=999, booking_day=DAY, start_time=time(9, 0), end_time=time(10, 0),
                             booked_by="Ms Smith")
    with pytest.raises(ForeignKeyError) as excinfo:
        add_booking(store, room, time(9, 0), time(10, 0), course_id=42)
    assert status_code_for(excinfo.value) == 400


def test_room_sort_order(db):
    for name in ("studio", "Room 10", "Lab", "Room 2"):
        add_room(db, name)
    store = BookingStore(db)
    assert [r.name for r in store.list_rooms()] == ["Room 2", "Room 10", "Lab", "studio"]


def test_unavailable_rooms_are_hidden(db):
    add_room(db, "Room 1")
    add_room(db, "Room 2", is_available=False)
    store = BookingStore(db)
    assert [r.name for r in store.list_rooms()] == ["Room 1"]
    assert len(store.list_rooms(available_only=False)) == 2


def test_sort_rooms_is_case_insensitive():
    class R:
        def __init__(self, name):
            self.name = name
    assert [r.name for r in sort_rooms([R("beta"), R("ROOM 3"), R("Alpha")])] == ["ROOM 3", "Alpha", "beta"]


def test_writes_publish_change_events(store, feed, room):
    events = []
    feed.subscribe(callback=events.append)
    booking = add_booking(store, room, time(9, 0), time(10, 0))
    store.delete_booking(booking)
    assert [(e.table, e.action, e.row_id) for e in events] == [
        ("bookings", "insert", booking.id),
        ("bookings", "delete", booking.id),
    ]
    assert events[0].day == DAY
    assert events[0].record["start_time"] == "09:00:00"


def test_transition_without_matches_does_not_write(store, feed, room):
    events = []
    add_booking(store, room, time(9, 0), time(10, 0), state="Active")
    feed.subscribe(callback=events.append)
    rows = store.transition_states(BookingState.ACTIVE, BookingState.OVERDUE, DAY, end_before=time(9, 30))
    assert rows == []
    assert events == []


def test_settings_round_trip(store, feed):
    events = []
    feed.subscribe(tables=["settings"], callback=events.append)
    assert store.get_setting("operation_hours", {"start": "06:00"}) == {"start": "06:00"}
    store.put_setting("operation_hours", {"start": "07:00", "end": "20:00"})
    store.put_setting("operation_hours", {"start": "08:00", "end": "20:00"})
    assert store.get_setting("operation_hours") == {"start": "08:00", "end": "20:00"}
    assert [e.action for e in events] == ["insert", "update"]
    assert events[-1].record["key"] == "operation_hours"
