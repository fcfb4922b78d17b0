"""
变更通知测试
"""
import asyncio
import threading
from datetime import date

from roombook.scheduling.feed import ChangeEvent, ChangeFeed

DAY = date(2025, 3, 10)


def booking_event(day=DAY, row_id=1, action="update"):
    return ChangeEvent(table="bookings", action=action, row_id=row_id, day=day)


def test_callback_subscription_filters_by_day():
    feed = ChangeFeed()
    received = []
    feed.subscribe(day=DAY, callback=received.append)
    feed.publish(booking_event())
    feed.publish(booking_event(day=date(2025, 3, 11)))
    feed.publish(booking_event(day=None, action="delete"))
    feed.publish(ChangeEvent(table="rooms", action="update", row_id=3))
    assert [(e.table, e.day) for e in received] == [("bookings", DAY), ("bookings", None), ("rooms", None)]


def test_table_filter():
    feed = ChangeFeed()
    received = []
    feed.subscribe(tables=["settings"], callback=received.append)
    feed.publish(booking_event())
    feed.publish(ChangeEvent(table="settings", action="update", record={"key": "operation_hours"}))
    assert [e.table for e in received] == ["settings"]


def test_close_stops_delivery():
    feed = ChangeFeed()
    received = []
    subscription = feed.subscribe(callback=received.append)
    assert feed.subscriber_count == 1
    subscription.close()
    feed.publish(booking_event())
    assert received == []
    assert feed.subscriber_count == 0


def test_failing_subscriber_does_not_break_others():
    feed = ChangeFeed()
    received = []

    def broken(event):
        raise RuntimeError("boom")

    feed.subscribe(callback=broken)
    feed.subscribe(callback=received.append)
    feed.publish(booking_event())
    assert len(received) == 1


def test_queue_subscription_receives_events_from_other_threads():
    async def scenario():
        feed = ChangeFeed()
        subscription = feed.subscribe(day=DAY)
        thread = threading.Thread(target=feed.publish, args=(booking_event(row_id=7),))
        thread.start()
        event = await subscription.get(timeout=2)
        thread.join()
        timed_out = await subscription.get(timeout=0.05)
        subscription.close()
        return event, timed_out

    event, timed_out = asyncio.run(scenario())
    assert event.row_id == 7
    assert timed_out is None
