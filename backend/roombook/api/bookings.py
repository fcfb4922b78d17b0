"""
预约管理API
"""
import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from roombook.api.deps import get_clock, get_reconciler, get_store
from roombook.config import get_settings
from roombook.db.store import BookingStore
from roombook.errors import OverlapError
from roombook.models.booking import Booking
from roombook.scheduling.availability import available_durations, available_extensions, room_status_at
from roombook.scheduling.clock import Clock
from roombook.scheduling.feed import ORIGIN_RECONCILER
from roombook.scheduling.grid_view import grid_to_dict
from roombook.scheduling.hours import load_opening_hours
from roombook.scheduling.occupancy import map_occupancy
from roombook.scheduling.reconciler import StatusReconciler
from roombook.scheduling.slots import (
    GRANULARITY, OpeningHours, generate_slots, is_slot_aligned, parse_time_of_day, round_to_nearest_slot,
)
from roombook.scheduling.states import (
    BLOCKING_STATES, RUNNING_STATES, BookingState, booking_end, booking_start, duration_minutes, state_of,
)
from roombook.schemas.booking import (
    OTHER_COURSE, BookingBase, BookingCreate, BookingUpdate, BookingResponse, DurationOptionsResponse,
    EndBookingRequest, ExtendBookingRequest, ExtensionOptionsResponse, ReconcileResponse,
)
from roombook.schemas.room import RoomStatusResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["预约管理"])


def _get_booking(store: BookingStore, booking_id: int) -> Booking:
    booking = store.get_booking(booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


def _parse_slot(value: str):
    parsed = parse_time_of_day(value)
    if parsed is None or not is_slot_aligned(parsed):
        raise HTTPException(status_code=400, detail="Start time must be on a 30-minute boundary (e.g. 09:00, 09:30)")
    return parsed


def _closing(hours: OpeningHours, start: datetime) -> Optional[datetime]:
    """start所在营业时段的关门时刻，不在营业时间内返回None"""
    window = hours.window_containing(start)
    return window[1] if window else None


def _response(booking: Booking, clock: Clock) -> BookingResponse:
    return BookingResponse.from_booking(booking, clock.now(), get_settings().late_grace_minutes)


def _course_fields(request: BookingBase) -> dict:
    if request.course_id == OTHER_COURSE:
        return {"course_id": None, "course_name": request.course_name}
    return {"course_id": request.course_id, "course_name": None}


def _room_offered(store: BookingStore, room_id: int) -> bool:
    """停用的房间不再接受预约；不存在的房间交给存储层报外键错误"""
    room = store.get_room(room_id)
    return room is None or room.is_available is not False


def _check_room_offered(store: BookingStore, room_id: int) -> None:
    if not _room_offered(store, room_id):
        raise HTTPException(status_code=400, detail="This room is not available for booking")


def _check_borrowed_items(borrowed_items, items_returned: bool) -> None:
    if get_settings().track_borrowed_items and borrowed_items and not items_returned:
        raise HTTPException(status_code=400, detail="Please confirm all borrowed items have been returned")


def _check_duration(
    store: BookingStore,
    request: BookingBase,
    exclude_id: Optional[int] = None,
    current: Optional[int] = None,
) -> datetime:
    """
    检查时长是否可选，返回结束时刻
    与其它预约冲突时抛出 OverlapError，由存储层统一的错误处理返回 409
    """
    start = datetime.combine(request.booking_day, request.start_time)
    end = start + timedelta(minutes=request.duration)
    hours = load_opening_hours(store)
    closing = _closing(hours, start)
    if closing is None:
        raise HTTPException(status_code=400, detail="Start time is outside operation hours")
    cap = get_settings().max_increment_minutes
    if request.duration > cap and request.duration != current:
        raise HTTPException(status_code=400, detail=f"Bookings can be at most {cap} minutes at a time")

    bookings = store.list_bookings(request.booking_day, request.room_id)
    options = available_durations(start, bookings, closing, exclude_id=exclude_id, current=current, cap=None)
    if request.duration in options:
        return end
    day_end = datetime.combine(request.booking_day, datetime.min.time()) + timedelta(days=1)
    if end > min(closing, day_end):
        raise HTTPException(status_code=400, detail="Booking must end by closing time")
    raise OverlapError(f"room {request.room_id} is not free from {start:%H:%M} for {request.duration} minutes")


# ---------- 网格 / 可用时长 ----------

@router.get("/grid")
def get_grid(
    day: Optional[date] = None,
    store: BookingStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    """获取某天的预约网格"""
    day = day or clock.today()
    now = clock.now()
    hours = load_opening_hours(store)
    grid = map_occupancy(store.list_rooms(), store.list_bookings(day), generate_slots(day, hours), now)
    return grid_to_dict(grid, day, hours, now, get_settings().late_grace_minutes)


@router.get("/availability", response_model=DurationOptionsResponse)
def get_availability(
    room_id: int,
    day: date,
    start: str,
    exclude_id: Optional[int] = None,
    current: Optional[int] = None,
    store: BookingStore = Depends(get_store),
):
    """获取从某时刻开始可选的时长"""
    start_time = _parse_slot(start)
    start_dt = datetime.combine(day, start_time)
    closing = _closing(load_opening_hours(store), start_dt)
    options: List[int] = []
    if closing is not None and _room_offered(store, room_id):
        options = available_durations(
            start_dt,
            store.list_bookings(day, room_id),
            closing,
            exclude_id=exclude_id,
            current=current,
            cap=get_settings().max_increment_minutes,
        )
    return DurationOptionsResponse(room_id=room_id, booking_day=day, start_time=start_time.strftime("%H:%M"),
                                   options=options)


@router.get("/room-status", response_model=List[RoomStatusResponse])
def get_room_status(
    day: Optional[date] = None,
    time: Optional[str] = None,
    store: BookingStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    """某一时刻各房间的占用情况（默认当前时刻所在的时间段）"""
    now = clock.now()
    day = day or now.date()
    if time is not None:
        at = datetime.combine(day, _parse_slot(time))
    else:
        slot = now.replace(minute=now.minute - now.minute % 30, second=0, microsecond=0)
        at = datetime.combine(day, slot.time())
    rooms = store.list_rooms()
    statuses = room_status_at(rooms, store.list_bookings(day), at, now, get_settings().late_grace_minutes)
    result = []
    for room, status in zip(rooms, statuses):
        result.append(RoomStatusResponse(
            room_id=room.id,
            name=room.name,
            capacity=room.capacity or 0,
            busy=status.busy,
            offered=status.offered,
            has_overdue=status.has_overdue,
            overdue_label=status.overdue_label,
            has_reserved_late=status.has_reserved_late,
            reserved_late_label=status.reserved_late_label,
        ))
    return result


@router.post("/reconcile", response_model=ReconcileResponse)
def reconcile_now(
    store: BookingStore = Depends(get_store),
    reconciler: StatusReconciler = Depends(get_reconciler),
):
    """立即执行一次状态同步"""
    store.origin = ORIGIN_RECONCILER
    result = reconciler.reconcile_safely(store)
    now = result.now or reconciler.clock.now()
    return ReconcileResponse(
        now=now.strftime("%Y-%m-%d %H:%M"),
        overdue=[b.id for b in result.overdue],
        reactivated=[b.id for b in result.reactivated],
        activated=[b.id for b in result.activated],
        failed=result.failed,
    )


# ---------- 预约增删改查 ----------

@router.get("", response_model=List[BookingResponse])
def get_bookings(
    day: Optional[date] = None,
    room_id: Optional[int] = None,
    store: BookingStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    """获取某天的预约列表（默认今天）"""
    bookings = store.list_bookings(day or clock.today(), room_id)
    return [_response(b, clock) for b in bookings]


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(booking_id: int, store: BookingStore = Depends(get_store), clock: Clock = Depends(get_clock)):
    """获取预约详情"""
    return _response(_get_booking(store, booking_id), clock)


@router.post("", response_model=BookingResponse)
def create_booking(
    request: BookingCreate,
    store: BookingStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    """创建预约"""
    _check_room_offered(store, request.room_id)
    end = _check_duration(store, request)
    booking = store.insert_booking(
        room_id=request.room_id,
        booking_day=request.booking_day,
        start_time=request.start_time,
        end_time=end.time(),
        state=request.state,
        booked_by=request.booked_by,
        student_numbers=request.student_numbers,
        borrowed_items=request.borrowed_items,
        **_course_fields(request),
    )
    logger.info("创建预约 %s: 房间 %s %s %s-%s", booking.id, booking.room_id, booking.booking_day,
                booking.start_time.strftime("%H:%M"), booking.end_time.strftime("%H:%M"))
    return _response(booking, clock)


@router.put("/{booking_id}", response_model=BookingResponse)
def update_booking(
    booking_id: int,
    request: BookingUpdate,
    store: BookingStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    """编辑预约"""
    booking = _get_booking(store, booking_id)
    current_state = state_of(booking)
    new_state = BookingState(request.state)
    if current_state == BookingState.ENDED and new_state != BookingState.ENDED:
        raise HTTPException(status_code=400, detail="Ended bookings cannot be reopened")
    if new_state == BookingState.OVERDUE and current_state not in RUNNING_STATES:
        raise HTTPException(status_code=400, detail="Only active bookings can become overdue")
    if new_state == BookingState.ENDED and current_state != BookingState.ENDED:
        _check_borrowed_items(request.borrowed_items, request.items_returned)
    if request.room_id != booking.room_id:
        _check_room_offered(store, request.room_id)

    if new_state in BLOCKING_STATES:
        current = duration_minutes(booking) if (
            booking.room_id == request.room_id
            and booking.booking_day == request.booking_day
            and booking.start_time == request.start_time
        ) else None
        end = _check_duration(store, request, exclude_id=booking.id, current=current)
    else:
        end = datetime.combine(request.booking_day, request.start_time) + timedelta(minutes=request.duration)
        if end.date() > request.booking_day and end.time() != datetime.min.time():
            raise HTTPException(status_code=400, detail="Booking must end by closing time")

    booking = store.replace_booking(
        booking,
        room_id=request.room_id,
        booking_day=request.booking_day,
        start_time=request.start_time,
        end_time=end.time(),
        state=new_state,
        booked_by=request.booked_by,
        student_numbers=request.student_numbers,
        borrowed_items=request.borrowed_items,
        **_course_fields(request),
    )
    return _response(booking, clock)


@router.delete("/{booking_id}")
def delete_booking(booking_id: int, store: BookingStore = Depends(get_store)):
    """删除预约（任何状态都可以删除）"""
    booking = _get_booking(store, booking_id)
    store.delete_booking(booking)
    logger.info("删除预约 %s", booking_id)
    return {"message": "Booking deleted"}


# ---------- 状态操作 ----------

@router.post("/{booking_id}/activate", response_model=BookingResponse)
def activate_booking(booking_id: int, store: BookingStore = Depends(get_store), clock: Clock = Depends(get_clock)):
    """开始预约：Reserved -> Active"""
    booking = _get_booking(store, booking_id)
    if state_of(booking) != BookingState.RESERVED:
        raise HTTPException(status_code=400, detail="Only reserved bookings can be started")
    booking = store.patch_booking(booking, state=BookingState.ACTIVE)
    return _response(booking, clock)


@router.post("/{booking_id}/end", response_model=BookingResponse)
def end_booking(
    booking_id: int,
    request: Optional[EndBookingRequest] = None,
    store: BookingStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    """
    结束预约
    结束时间取当前时间（取整到30分钟）与原定结束时间中较早的一个，
    且至少比开始时间晚30分钟
    """
    request = request or EndBookingRequest()
    booking = _get_booking(store, booking_id)
    if state_of(booking) == BookingState.ENDED:
        raise HTTPException(status_code=400, detail="Booking has already ended")
    _check_borrowed_items(booking.borrowed_items, request.items_returned)

    start = booking_start(booking)
    end = min(round_to_nearest_slot(clock.now()), booking_end(booking))
    if end <= start:
        end = start + GRANULARITY
    booking = store.patch_booking(booking, state=BookingState.ENDED, end_time=end.time())
    logger.info("结束预约 %s，结束时间 %s", booking.id, booking.end_time.strftime("%H:%M"))
    return _response(booking, clock)


@router.get("/{booking_id}/extensions", response_model=ExtensionOptionsResponse)
def get_extensions(booking_id: int, store: BookingStore = Depends(get_store)):
    """获取可延长的时长"""
    booking = _get_booking(store, booking_id)
    options: List[int] = []
    if state_of(booking) in RUNNING_STATES:
        options = _extension_options(store, booking)
    return ExtensionOptionsResponse(booking_id=booking.id, end_time=booking.end_time.strftime("%H:%M"),
                                    options=options)


def _extension_options(store: BookingStore, booking: Booking) -> List[int]:
    closing = _closing(load_opening_hours(store), booking_start(booking))
    if closing is None:
        return []
    return available_extensions(
        booking,
        store.list_bookings(booking.booking_day, booking.room_id),
        closing,
        cap=get_settings().max_increment_minutes,
    )


@router.post("/{booking_id}/extend", response_model=BookingResponse)
def extend_booking(
    booking_id: int,
    request: ExtendBookingRequest,
    store: BookingStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    """延长预约（仅 Active / Overdue）"""
    booking = _get_booking(store, booking_id)
    if state_of(booking) not in RUNNING_STATES:
        raise HTTPException(status_code=400, detail="Only active or overdue bookings can be extended")
    options = _extension_options(store, booking)
    if request.minutes not in options:
        if not options:
            raise HTTPException(status_code=400, detail="This booking cannot be extended. The room is not free after it.")
        raise HTTPException(
            status_code=400,
            detail=f"Cannot extend by {request.minutes} minutes. Available: {', '.join(str(o) for o in options)}",
        )

    new_end = booking_end(booking) + timedelta(minutes=request.minutes)
    changes = {"end_time": new_end.time()}
    if new_end > clock.now():
        changes["state"] = BookingState.ACTIVE
    booking = store.patch_booking(booking, **changes)
    logger.info("延长预约 %s %d 分钟", booking.id, request.minutes)
    return _response(booking, clock)
