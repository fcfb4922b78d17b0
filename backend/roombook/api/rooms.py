"""
房间管理API
"""
from fastapi import APIRouter, Depends, HTTPException
from typing import List
from roombook.api.deps import get_store
from roombook.db.store import BookingStore
from roombook.models.booking import Booking
from roombook.models.room import Room
from roombook.schemas.room import RoomCreate, RoomUpdate, RoomLabelsUpdate, RoomResponse

router = APIRouter(prefix="/api/rooms", tags=["房间管理"])


def _get_room(store: BookingStore, room_id: int) -> Room:
    room = store.db.query(Room).filter(Room.id == room_id).first()
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")
    return room


@router.get("", response_model=List[RoomResponse])
def get_rooms(available_only: bool = False, store: BookingStore = Depends(get_store)):
    """获取房间列表（Room N 按数字排序）"""
    return store.list_rooms(available_only=available_only)


@router.get("/{room_id}", response_model=RoomResponse)
def get_room(room_id: int, store: BookingStore = Depends(get_store)):
    """获取房间详情"""
    return _get_room(store, room_id)


@router.post("", response_model=RoomResponse)
def create_room(room: RoomCreate, store: BookingStore = Depends(get_store)):
    """创建房间"""
    db = store.db
    if db.query(Room).filter(Room.name == room.name).first():
        raise HTTPException(status_code=400, detail="A room with this name already exists")
    db_room = Room(**room.model_dump())
    db.add(db_room)
    db.commit()
    db.refresh(db_room)
    store.publish("rooms", "insert", db_room.id)
    return db_room


@router.put("/{room_id}", response_model=RoomResponse)
def update_room(room_id: int, request: RoomUpdate, store: BookingStore = Depends(get_store)):
    """更新房间"""
    db = store.db
    room = _get_room(store, room_id)

    # 检查名称是否重复
    if request.name and request.name != room.name:
        if db.query(Room).filter(Room.name == request.name).first():
            raise HTTPException(status_code=400, detail="A room with this name already exists")

    for field, value in request.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(room, field, value)

    db.commit()
    db.refresh(room)
    store.publish("rooms", "update", room.id)
    return room


@router.put("/{room_id}/labels", response_model=RoomResponse)
def update_room_labels(room_id: int, request: RoomLabelsUpdate, store: BookingStore = Depends(get_store)):
    """更新房间维护标签"""
    room = _get_room(store, room_id)
    room.dynamic_labels = [label.strip() for label in request.dynamic_labels if label.strip()]
    store.db.commit()
    store.db.refresh(room)
    store.publish("rooms", "update", room.id)
    return room


@router.delete("/{room_id}")
def delete_room(room_id: int, store: BookingStore = Depends(get_store)):
    """
    删除房间
    注意：只能删除从未被预约过的房间，有预约记录的房间请改为不可预约
    """
    db = store.db
    room = _get_room(store, room_id)

    booking_count = db.query(Booking).filter(Booking.room_id == room_id).count()
    if booking_count > 0:
        raise HTTPException(
            status_code=400,
            detail="This room has bookings and cannot be deleted. Mark it as unavailable instead.",
        )

    name = room.name
    db.delete(room)
    db.commit()
    store.publish("rooms", "delete", room_id)
    return {"message": f"Room {name} deleted"}
