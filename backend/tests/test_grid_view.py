"""
实时网格视图测试
"""
from datetime import date, datetime, time

from conftest import DAY, add_booking
from roombook.scheduling.clock import FixedClock
from roombook.scheduling.feed import ORIGIN_RECONCILER, ChangeEvent
from roombook.scheduling.grid_view import DayGridView
from roombook.scheduling.reconciler import StatusReconciler


class FakeMonotonic:
    def __init__(self):
        self.value = 100.0

    def __call__(self):
        return self.value


def make_view(session_factory, feed, clock, monotonic=None):
    return DayGridView(
        session_factory, DAY, clock, feed=feed,
        reconciler=StatusReconciler(clock), cooldown=1.2,
        monotonic=monotonic or FakeMonotonic(),
    )


def test_snapshot_contains_grid(session_factory, store, feed, room):
    clock = FixedClock(datetime(2025, 3, 10, 9, 0))
    booking = add_booking(store, room, time(9, 0), time(10, 0))
    view = make_view(session_factory, feed, clock)
    assert view.load()
    snapshot = view.snapshot()
    assert snapshot["day"] == "2025-03-10"
    assert snapshot["opening_hours"] == {"start": "06:00", "end": "21:00"}
    assert [r["name"] for r in snapshot["rooms"]] == ["Room 1"]
    row = next(r for r in snapshot["rows"] if r["time"] == "09:00")
    assert row["is_now"]
    assert row["cells"][0]["booking_id"] == booking.id
    assert row["cells"][0]["row_span"] == 2
    covered = next(r for r in snapshot["rows"] if r["time"] == "09:30")
    assert covered["cells"][0] == {"room_id": room.id, "kind": "covered"}


def test_relevant_changes_refresh_bookings(session_factory, store, feed, room):
    clock = FixedClock(datetime(2025, 3, 10, 9, 0))
    view = make_view(session_factory, feed, clock)
    view.load()
    booking = add_booking(store, room, time(11, 0), time(12, 0))
    assert view.handle_change(ChangeEvent("bookings", "insert", booking.id, DAY))
    assert [b.id for b in view.bookings] == [booking.id]
    assert not view.handle_change(ChangeEvent("bookings", "insert", 99, date(2025, 3, 11)))
    store.delete_booking(booking)
    assert view.handle_change(ChangeEvent("bookings", "delete", booking.id))
    assert view.bookings == []
    assert not view.handle_change(ChangeEvent("settings", "update", record={"key": "testing_clock"}))


def test_tick_merges_and_skips_own_echo(session_factory, store, feed, room):
    clock = FixedClock(datetime(2025, 3, 10, 11, 0))
    monotonic = FakeMonotonic()
    booking = add_booking(store, room, time(9, 0), time(10, 0), state="Active")
    view = make_view(session_factory, feed, clock, monotonic)
    view.load()
    subscription = view.subscribe()

    assert view.tick()
    assert view.bookings[0].state == "Overdue"
    echo = subscription.queue.get_nowait()
    assert echo.origin == ORIGIN_RECONCILER
    assert not view.handle_change(echo)

    monotonic.value += 2
    assert view.handle_change(echo)
    assert not view.tick()
    view.close()
    assert booking.id == view.bookings[0].id


def test_closed_view_discards_results(session_factory, store, feed, room):
    clock = FixedClock(datetime(2025, 3, 10, 9, 0))
    view = make_view(session_factory, feed, clock)
    view.subscribe()
    assert feed.subscriber_count == 1
    view.close()
    assert feed.subscriber_count == 0
    add_booking(store, room, time(9, 0), time(10, 0))
    assert not view.load()
    assert view.bookings == []
    assert not view.tick()
